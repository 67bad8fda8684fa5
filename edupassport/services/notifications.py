"""Transient transaction status shown after a registry action.

One status at a time.  A pending status stays until replaced; success
hides after 2 seconds and errors after 3, without blocking anything.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from edupassport.core.errors import RegistryError, UserRejected

NotificationKind = Literal["pending", "success", "error"]

SUCCESS_DISMISS_SECONDS = 2.0
ERROR_DISMISS_SECONDS = 3.0


@dataclass(frozen=True, slots=True)
class TransactionStatus:
    status: NotificationKind
    message: str
    visible_until: float | None = None  # None: until replaced


def describe_failure(action: str, exc: Exception) -> str:
    """User-facing text for a failed action.

    A declined wallet prompt is not an error the user needs to debug, so
    it gets its own wording instead of the generic "<action> failed".
    """
    if isinstance(exc, UserRejected):
        return UserRejected.user_message
    if isinstance(exc, RegistryError):
        detail = exc.user_message
    else:
        detail = str(exc) or "Unknown error"
    return f"{action} failed: {detail}"


class NotificationCenter:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._status: TransactionStatus | None = None

    def pending(self, message: str) -> TransactionStatus:
        return self._show("pending", message, None)

    def success(self, message: str) -> TransactionStatus:
        return self._show("success", message, SUCCESS_DISMISS_SECONDS)

    def failure(self, action: str, exc: Exception) -> TransactionStatus:
        return self._show("error", describe_failure(action, exc), ERROR_DISMISS_SECONDS)

    def current(self) -> TransactionStatus | None:
        status = self._status
        if status is None:
            return None
        if status.visible_until is not None and self._clock() >= status.visible_until:
            self._status = None
            return None
        return status

    def dismiss(self) -> None:
        self._status = None

    def _show(
        self, kind: NotificationKind, message: str, ttl: float | None
    ) -> TransactionStatus:
        visible_until = None if ttl is None else self._clock() + ttl
        self._status = TransactionStatus(kind, message, visible_until)
        return self._status
