"""Error taxonomy for registry, codec and reveal operations.

Every failure a caller can act on has its own class so the HTTP layer
(and any other driver) can tell them apart without string matching.
``user_message`` is the short text shown in the transaction status
notification; ``str(exc)`` keeps the technical detail for logs.
"""

from __future__ import annotations


class RegistryError(Exception):
    user_message = "Operation failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message


class Unavailable(RegistryError):
    """The blob store reported itself not ready."""

    user_message = "Credential store is not available"


class NotFound(RegistryError):
    user_message = "Credential not found"


class Unauthorized(RegistryError):
    """Requester is not the owner of the credential."""

    user_message = "Only the credential owner can do that"


class IllegalTransition(RegistryError):
    """Status change attempted on a credential that is no longer pending."""

    user_message = "Credential status can no longer change"


class MalformedToken(RegistryError):
    user_message = "Obscured score is malformed"


class MalformedRecord(RegistryError):
    user_message = "Stored credential is malformed"


class Unauthenticated(RegistryError):
    """No wallet identity is attached to the request."""

    user_message = "Please connect wallet first"


class UserRejected(RegistryError):
    """The wallet holder declined the signature prompt."""

    user_message = "Transaction rejected by user"


class BackendFailure(RegistryError):
    """A blob store read or write failed for reasons opaque to the registry."""

    user_message = "Credential store request failed"
