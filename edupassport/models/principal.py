from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WalletPrincipal:
    """Connected wallet extracted from a validated access token.

    Carried through the request via FastAPI's dependency system; the
    address is the requester for ownership checks.
    """

    address: str

    def owns(self, owner: str) -> bool:
        return self.address.lower() == owner.lower()
