"""Process-wide application state.

One object with a named field per concern, handed to routes through a
FastAPI dependency instead of being spread across module globals:

  registry       : credential registry over the configured blob store
  reveal         : reveal protocol with this process's challenge params
  activity       : recent actions (display only)
  notifications  : current transaction status
  reveal_session : plaintext score of the one credential being viewed
"""

from __future__ import annotations

from dataclasses import dataclass, field

from edupassport.core.config import SETTINGS, Settings
from edupassport.repos.blob_store import BlobStore, blob_store
from edupassport.services.activity_log import ActivityLog
from edupassport.services.notifications import NotificationCenter
from edupassport.services.obscure_codec import Score, default_codec
from edupassport.services.registry import CredentialRegistry
from edupassport.services.reveal import ChallengeParams, RevealProtocol


@dataclass(frozen=True, slots=True)
class RevealSession:
    """A revealed score held only while its detail view is open."""

    credential_id: str
    owner: str
    score: Score


@dataclass
class AppState:
    registry: CredentialRegistry
    reveal: RevealProtocol
    activity: ActivityLog = field(default_factory=ActivityLog)
    notifications: NotificationCenter = field(default_factory=NotificationCenter)
    reveal_session: RevealSession | None = None

    def open_reveal(self, session: RevealSession) -> None:
        # Opening a detail view replaces whatever was shown before.
        self.reveal_session = session

    def close_reveal(self, credential_id: str | None = None) -> bool:
        """Destroy the session (only if it belongs to credential_id, when given)."""
        session = self.reveal_session
        if session is None:
            return False
        if credential_id is not None and session.credential_id != credential_id:
            return False
        self.reveal_session = None
        return True

    def reset(self) -> None:
        self.activity.clear()
        self.notifications.dismiss()
        self.reveal_session = None


def build_app_state(store: BlobStore, settings: Settings = SETTINGS) -> AppState:
    params = ChallengeParams.generate(
        contract_address=settings.contract_address,
        chain_id=settings.chain_id,
        duration_days=settings.reveal_duration_days,
    )
    return AppState(
        registry=CredentialRegistry(store, default_codec),
        reveal=RevealProtocol(params, default_codec),
    )


app_state = build_app_state(blob_store)


def get_app_state() -> AppState:
    """FastAPI dependency; tests override it with ``app.dependency_overrides``."""
    return app_state
