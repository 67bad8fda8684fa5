"""Owner-consented reveal of an obscured score.

FLOW
------
  1. The caller must have a wallet identity        -> else Unauthenticated
  2. The wallet signs the challenge message        -> else UserRejected
  3. The token is decoded locally                  -> MalformedToken on bad shape
  4. The plaintext is returned to the caller only

The challenge binds a session public key, the contract address, the
chain id and a validity window, one ``key:value`` per line:

    publickey:0x3fa9...
    contractAddresses:0x5FbDB2315678afecb367f032d93F642f64180aa3
    contractsChainId:11155111
    startTimestamp:1739600000
    durationDays:30

TRUST BOUNDARY
----------------
The signature is a consent gate, not a key: it is not checked against
the token and nothing is derived from it.  Anyone who can read the token
can decode it without signing.  Replacing PrefixedBase64Codec with a
codec keyed by the signature is the hardening path.

Consent is never cached: every call asks the signer again.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from edupassport.core.errors import (
    RegistryError,
    Unauthenticated,
    UserRejected,
)
from edupassport.core.metrics import REVEAL_ATTEMPTS
from edupassport.services.obscure_codec import ObscureCodec, Score, default_codec

logger = logging.getLogger(__name__)

PUBLIC_KEY_HEX_LEN = 2000


@dataclass(frozen=True, slots=True)
class ChallengeParams:
    public_key: str
    contract_address: str
    chain_id: int
    start_timestamp: int
    duration_days: int = 30

    @staticmethod
    def generate(
        *,
        contract_address: str,
        chain_id: int,
        duration_days: int = 30,
        now: float | None = None,
    ) -> ChallengeParams:
        """Fresh session key material with a window starting now."""
        return ChallengeParams(
            public_key=generate_public_key(),
            contract_address=contract_address,
            chain_id=chain_id,
            start_timestamp=int(time.time() if now is None else now),
            duration_days=duration_days,
        )


def generate_public_key() -> str:
    return "0x" + secrets.token_hex(PUBLIC_KEY_HEX_LEN // 2)


def build_challenge(params: ChallengeParams) -> str:
    return "\n".join(
        (
            f"publickey:{params.public_key}",
            f"contractAddresses:{params.contract_address}",
            f"contractsChainId:{params.chain_id}",
            f"startTimestamp:{params.start_timestamp}",
            f"durationDays:{params.duration_days}",
        )
    )


@runtime_checkable
class Signer(Protocol):
    """Wallet signer.  ``address`` is None when no wallet is connected."""

    @property
    def address(self) -> str | None: ...

    async def sign_message(self, message: str) -> str:
        """Return a signature over message.  Raises UserRejected if declined."""
        ...


class PresentedSignatureSigner:
    """Signer for a signature produced out-of-band by the client's wallet.

    The HTTP client fetches the challenge, signs it in the wallet and
    posts the result.  No signature means the holder declined.
    """

    def __init__(self, address: str | None, signature: str | None) -> None:
        self._address = address
        self._signature = signature

    @property
    def address(self) -> str | None:
        return self._address

    async def sign_message(self, message: str) -> str:
        if not self._signature:
            raise UserRejected("no signature presented for the reveal challenge")
        return self._signature


class RevealProtocol:
    def __init__(
        self,
        params: ChallengeParams,
        codec: ObscureCodec = default_codec,
    ) -> None:
        self.params = params
        self._codec = codec

    @property
    def challenge(self) -> str:
        return build_challenge(self.params)

    async def decrypt_with_signature(self, token: str, signer: Signer | None) -> Score:
        try:
            score = await self._decrypt(token, signer)
        except RegistryError as e:
            REVEAL_ATTEMPTS.labels(result=type(e).__name__).inc()
            raise
        REVEAL_ATTEMPTS.labels(result="ok").inc()
        return score

    async def _decrypt(self, token: str, signer: Signer | None) -> Score:
        if signer is None or not signer.address:
            raise Unauthenticated("a connected wallet is required to reveal a score")

        await signer.sign_message(self.challenge)
        logger.debug("Reveal consent signed by %s", signer.address)
        return self._codec.reveal(token)
