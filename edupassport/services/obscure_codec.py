"""Reversible obscuring of credential scores.

The stored score is an opaque token, not ciphertext: the owner recovers
the exact number locally without talking to an issuer.  The registry
only depends on the ObscureCodec protocol, so a real cryptographic
codec can replace PrefixedBase64Codec without touching registry code.

Token shape (compatible with tokens already in the contract store):

    "FHE-" + base64(str(score))      e.g. 92 -> "FHE-OTI="
"""

from __future__ import annotations

import base64
import binascii
import math
import re
from typing import Protocol, runtime_checkable

from edupassport.core.errors import MalformedToken

Score = int | float

_DECIMAL = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")


@runtime_checkable
class ObscureCodec(Protocol):
    def obscure(self, score: Score) -> str: ...
    def reveal(self, token: str) -> Score: ...


class PrefixedBase64Codec:
    prefix = "FHE-"

    def obscure(self, score: Score) -> str:
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValueError(f"score must be a number (got {score!r})")
        if not math.isfinite(score):
            raise ValueError(f"score must be finite (got {score!r})")
        text = repr(score) if isinstance(score, float) else str(score)
        return self.prefix + base64.b64encode(text.encode("ascii")).decode("ascii")

    def reveal(self, token: str) -> Score:
        if not isinstance(token, str) or not token.startswith(self.prefix):
            raise MalformedToken(f"token does not start with {self.prefix!r}")
        try:
            text = base64.b64decode(token[len(self.prefix) :], validate=True).decode(
                "ascii"
            )
        except (binascii.Error, UnicodeDecodeError):
            raise MalformedToken("token payload is not valid base64") from None

        if not _DECIMAL.fullmatch(text):
            raise MalformedToken(f"token payload is not a number: {text!r}")
        try:
            if "." not in text and "e" not in text.lower():
                return int(text)
            value = float(text)
        except ValueError:
            # int() refuses digit strings past the interpreter's conversion limit.
            raise MalformedToken(
                f"token payload is too long: {len(text)} chars"
            ) from None
        if not math.isfinite(value):
            raise MalformedToken(f"token payload is not finite: {text!r}")
        return value


default_codec: ObscureCodec = PrefixedBase64Codec()
