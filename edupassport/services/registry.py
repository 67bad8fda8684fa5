"""Credential registry: the index, the records and the status lifecycle.

STORAGE LAYOUT
----------------
Everything lives in a flat key-value blob store:

  credential_keys        -> JSON list of ids, oldest first   (the INDEX)
  credential_<id>        -> JSON record (see CredentialRecord)

An id is listed iff its record exists.  ``create`` writes the record
first and the index second, so a failure between the two leaves an
unreachable record, never a dangling index entry that points at nothing
the registry wrote.

THE INDEX RACE
----------------
Appending to the index is read-modify-write with a full replace:

  client A: read [x]        client B: read [x]
  client A: write [x, a]    client B: write [x, b]     <- "a" is lost

The store offers no compare-and-swap or atomic append, so the registry
cannot close this window; it only keeps it short by re-reading right
before the write.  Record ``a`` still exists, it just is no longer
listed.  A hardened deployment needs an append primitive from the store.

STATUS LIFECYCLE
------------------
  pending --verify(owner)--> verified   (terminal)
  pending --reject(owner)--> rejected   (terminal)

Transitions rewrite the record only; the index never changes after
creation.  Nothing is cached between calls: every operation re-reads.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import time
from collections import Counter
from collections.abc import Callable, Iterable

from pydantic import ValidationError

from edupassport.core.errors import (
    IllegalTransition,
    MalformedRecord,
    NotFound,
    RegistryError,
    Unauthorized,
    Unavailable,
)
from edupassport.core.metrics import LISTING_SKIPS, REGISTRY_OPERATIONS
from edupassport.models.credential import (
    Credential,
    CredentialRecord,
    CredentialStatus,
)
from edupassport.repos.blob_store import BlobStore
from edupassport.services.obscure_codec import ObscureCodec, Score, default_codec

logger = logging.getLogger(__name__)

INDEX_KEY = "credential_keys"
RECORD_PREFIX = "credential"

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_RANDOM_LEN = 8


def record_key(credential_id: str) -> str:
    return f"{RECORD_PREFIX}_{credential_id}"


def new_credential_id(now_ms: int) -> str:
    """``cred-<unix ms>-<8 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_RANDOM_LEN))
    return f"cred-{now_ms}-{suffix}"


def parse_index(payload: bytes) -> list[str]:
    """Decode the index blob.  Empty payload -> []; anything else invalid raises."""
    if not payload:
        return []
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedRecord("credential index is not UTF-8") from None
    if not text.strip():
        return []
    try:
        ids = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecord(f"credential index is not JSON: {e}") from None
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise MalformedRecord("credential index is not a list of ids")
    return ids


def parse_record(credential_id: str, payload: bytes) -> CredentialRecord:
    try:
        return CredentialRecord.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedRecord(
            f"credential {credential_id} failed validation: {e.error_count()} error(s)"
        ) from None


class CredentialRegistry:
    """Registry operations over a BlobStore.

    ``clock`` returns seconds since epoch as a float and drives both the
    record timestamp and the time component of new ids.
    """

    def __init__(
        self,
        store: BlobStore,
        codec: ObscureCodec = default_codec,
        *,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[int], str] = new_credential_id,
    ) -> None:
        self._store = store
        self._codec = codec
        self._clock = clock
        self._id_factory = id_factory

    @property
    def codec(self) -> ObscureCodec:
        return self._codec

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[Credential]:
        """All listable credentials, newest first.

        Never raises for a bad record: missing, unreadable or malformed
        entries are skipped and logged.  An unavailable store or an
        unreadable index yields [].
        """
        if not await self._store.is_available():
            logger.info("Blob store unavailable; listing no credentials")
            REGISTRY_OPERATIONS.labels(operation="list", result="Unavailable").inc()
            return []

        try:
            ids = parse_index(await self._store.get_data(INDEX_KEY))
        except RegistryError as e:
            logger.warning("Cannot read credential index: %s", e)
            REGISTRY_OPERATIONS.labels(operation="list", result=type(e).__name__).inc()
            return []

        credentials: list[Credential] = []
        seen: set[str] = set()
        # Walk newest-appended first so equal timestamps keep that order
        # through the stable sort below.
        for credential_id in reversed(ids):
            if credential_id in seen:
                continue
            seen.add(credential_id)
            credential = await self._load_for_listing(credential_id)
            if credential is not None:
                credentials.append(credential)

        credentials.sort(key=lambda c: c.timestamp, reverse=True)
        REGISTRY_OPERATIONS.labels(operation="list", result="ok").inc()
        return credentials

    async def _load_for_listing(self, credential_id: str) -> Credential | None:
        try:
            payload = await self._store.get_data(record_key(credential_id))
        except RegistryError as e:
            logger.warning(
                "Skipping credential %s: %s",
                credential_id,
                e,
                extra={"credential_id": credential_id},
            )
            LISTING_SKIPS.labels(reason="unreadable").inc()
            return None

        if not payload:
            logger.warning(
                "Skipping credential %s: indexed but no record stored",
                credential_id,
                extra={"credential_id": credential_id},
            )
            LISTING_SKIPS.labels(reason="missing").inc()
            return None

        try:
            return parse_record(credential_id, payload).to_credential(credential_id)
        except MalformedRecord as e:
            logger.warning(
                "Skipping credential %s: %s",
                credential_id,
                e,
                extra={"credential_id": credential_id},
            )
            LISTING_SKIPS.labels(reason="malformed").inc()
            return None

    async def get(self, credential_id: str) -> Credential:
        record = await self._read_record(credential_id)
        return record.to_credential(credential_id)

    async def _read_record(self, credential_id: str) -> CredentialRecord:
        await self._require_available()
        payload = await self._store.get_data(record_key(credential_id))
        if not payload:
            raise NotFound(f"credential {credential_id} not found")
        return parse_record(credential_id, payload)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        institution: str,
        course: str,
        score: Score | None,
        owner: str,
    ) -> Credential:
        if not institution or not institution.strip():
            raise ValueError("institution must not be empty")
        if not course or not course.strip():
            raise ValueError("course must not be empty")
        if score is None:
            raise ValueError("score is required")
        if not owner:
            raise ValueError("owner must not be empty")

        try:
            credential = await self._create(institution, course, score, owner)
        except (RegistryError, ValueError) as e:
            REGISTRY_OPERATIONS.labels(operation="create", result=type(e).__name__).inc()
            raise
        REGISTRY_OPERATIONS.labels(operation="create", result="ok").inc()
        return credential

    async def _create(
        self, institution: str, course: str, score: Score, owner: str
    ) -> Credential:
        await self._require_available()

        token = self._codec.obscure(score)
        now = self._clock()
        credential = Credential(
            id=self._id_factory(int(now * 1000)),
            obscured_score=token,
            timestamp=int(now),
            owner=owner,
            institution=institution,
            course=course,
        )

        await self._store.set_data(
            record_key(credential.id),
            CredentialRecord.from_credential(credential).to_blob(),
        )

        # Re-read right before writing to keep the lost-update window short.
        ids = parse_index(await self._store.get_data(INDEX_KEY))
        ids.append(credential.id)
        await self._store.set_data(INDEX_KEY, json.dumps(ids).encode("utf-8"))

        logger.info(
            "Created credential %s for %s",
            credential.id,
            owner,
            extra={"credential_id": credential.id, "wallet": owner},
        )
        return credential

    async def transition(
        self,
        credential_id: str,
        requester: str | None,
        target: CredentialStatus | str,
    ) -> Credential:
        try:
            credential = await self._transition(credential_id, requester, target)
        except RegistryError as e:
            REGISTRY_OPERATIONS.labels(
                operation="transition", result=type(e).__name__
            ).inc()
            raise
        REGISTRY_OPERATIONS.labels(operation="transition", result="ok").inc()
        return credential

    async def _transition(
        self,
        credential_id: str,
        requester: str | None,
        target: CredentialStatus | str,
    ) -> Credential:
        try:
            target_status = CredentialStatus(target)
        except ValueError:
            raise IllegalTransition(f"unknown target status {target!r}") from None
        if not target_status.is_terminal:
            raise IllegalTransition(f"cannot transition to {target_status}")

        record = await self._read_record(credential_id)
        credential = record.to_credential(credential_id)

        if not credential.is_owned_by(requester):
            logger.warning(
                "Transition denied: %s is not the owner of %s",
                requester,
                credential_id,
                extra={"credential_id": credential_id, "wallet": requester},
            )
            raise Unauthorized(f"{requester} does not own credential {credential_id}")

        if credential.status.is_terminal:
            raise IllegalTransition(
                f"credential {credential_id} is already {credential.status}"
            )

        updated = record.model_copy(update={"status": target_status})
        await self._store.set_data(record_key(credential_id), updated.to_blob())

        logger.info(
            "Credential %s %s -> %s",
            credential_id,
            credential.status,
            target_status,
            extra={"credential_id": credential_id, "wallet": requester},
        )
        return updated.to_credential(credential_id)

    async def verify(self, credential_id: str, requester: str | None) -> Credential:
        return await self.transition(credential_id, requester, CredentialStatus.VERIFIED)

    async def reject(self, credential_id: str, requester: str | None) -> Credential:
        return await self.transition(credential_id, requester, CredentialStatus.REJECTED)

    async def _require_available(self) -> None:
        if not await self._store.is_available():
            raise Unavailable()


# ---------------------------------------------------------------------------
# Dashboard helpers
# ---------------------------------------------------------------------------


def filter_credentials(
    credentials: Iterable[Credential],
    search: str = "",
    status: CredentialStatus | str | None = None,
) -> list[Credential]:
    """Case-insensitive substring match on institution or course, plus status."""
    needle = search.strip().lower()
    wanted = None if status in (None, "", "all") else CredentialStatus(status)
    return [
        c
        for c in credentials
        if (needle in c.institution.lower() or needle in c.course.lower())
        and (wanted is None or c.status is wanted)
    ]


def count_by_status(credentials: Iterable[Credential]) -> dict[str, int]:
    counts = Counter(c.status for c in credentials)
    return {status.value: counts.get(status, 0) for status in CredentialStatus}
