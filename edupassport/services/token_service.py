"""Wallet session tokens (ES256 JWT).

The wallet bootstrap layer connects the wallet and mints an access token
whose ``sub`` is the wallet address.  This service only verifies them,
so both sides must share the key pair:

  JWT_PRIVATE_KEY_PATH set   -> load the PEM (EC P-256 private key)
  not set (dev/test)         -> ephemeral key generated on import
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from edupassport.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "edupassport-wallet"
AUDIENCE = "edupassport-registry"
ACCESS_TOKEN_TTL_MIN = 60


def _load_private_key(path: str | None) -> ec.EllipticCurvePrivateKey:
    if path is None:
        return ec.generate_private_key(ec.SECP256R1())
    key = serialization.load_pem_private_key(Path(path).read_bytes(), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError(f"JWT_PRIVATE_KEY_PATH must hold an EC private key ({path})")
    return key


_private_key = _load_private_key(SETTINGS.jwt_private_key_path)
_public_key = _private_key.public_key()


def create_access_token(*, address: str) -> str:
    """Build and sign an access token for a connected wallet."""
    now = datetime.now(UTC)
    payload = {
        "sub": address,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
