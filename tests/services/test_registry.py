"""Registry behaviour against an in-memory contract store.

Each test builds its own store and registry so the singletons used by
the HTTP tests stay untouched.
"""

from __future__ import annotations

import asyncio
import itertools
import json

import pytest
from prometheus_client import REGISTRY

from edupassport.core.errors import (
    BackendFailure,
    IllegalTransition,
    MalformedRecord,
    NotFound,
    Unauthorized,
    Unavailable,
)
from edupassport.models.credential import Credential, CredentialStatus
from edupassport.repos.blob_store import InMemoryBlobStore
from edupassport.services.obscure_codec import default_codec
from edupassport.services.registry import (
    INDEX_KEY,
    CredentialRegistry,
    count_by_status,
    filter_credentials,
    new_credential_id,
    parse_index,
    record_key,
)

OWNER = "0xAAA0000000000000000000000000000000000001"
STRANGER = "0xBBB0000000000000000000000000000000000002"


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


class _StepClock:
    """Each call advances one second from 1_700_000_000."""

    def __init__(self) -> None:
        self._ticks = itertools.count(1_700_000_000)

    def __call__(self) -> float:
        return float(next(self._ticks))


class _FlakyStore(InMemoryBlobStore):
    """Fails every set_data for the given keys."""

    def __init__(self, failing_keys: set[str]) -> None:
        super().__init__()
        self.failing_keys = failing_keys

    async def set_data(self, key: str, value: bytes) -> None:
        if key in self.failing_keys:
            raise BackendFailure(f"set {key!r} failed: simulated")
        await super().set_data(key, value)


def _registry(store: InMemoryBlobStore | None = None) -> CredentialRegistry:
    return CredentialRegistry(
        store if store is not None else InMemoryBlobStore(),
        default_codec,
        clock=_StepClock(),
    )


def _run(coro):
    return asyncio.run(coro)


# ---- create + list ----


def test_created_credential_is_listed_once_as_pending() -> None:
    registry = _registry()
    created = _run(registry.create("MIT", "CS101", 92, OWNER))

    listed = _run(registry.list_all())
    assert [c.id for c in listed] == [created.id]
    assert listed[0].status is CredentialStatus.PENDING
    assert listed[0].owner == OWNER
    assert listed[0].timestamp == 1_700_000_000


def test_create_stores_record_and_index_under_contract_keys() -> None:
    store = InMemoryBlobStore()
    created = _run(_registry(store).create("MIT", "CS101", 92, OWNER))

    assert json.loads(store._blobs[INDEX_KEY]) == [created.id]
    record = json.loads(store._blobs[record_key(created.id)])
    assert record == {
        "score": "FHE-OTI=",
        "timestamp": created.timestamp,
        "owner": OWNER,
        "institution": "MIT",
        "course": "CS101",
        "status": "pending",
    }


def test_scenario_create_reveal_verify_then_reject() -> None:
    registry = _registry()
    _run(registry.create("Stanford", "CS229", 80, STRANGER))
    created = _run(registry.create("MIT", "CS101", 92, OWNER))

    first = _run(registry.list_all())[0]
    assert first.id == created.id
    assert default_codec.reveal(first.obscured_score) == 92

    verified = _run(registry.verify(created.id, OWNER))
    assert verified.status is CredentialStatus.VERIFIED

    with pytest.raises(IllegalTransition):
        _run(registry.reject(created.id, OWNER))
    assert _run(registry.get(created.id)).status is CredentialStatus.VERIFIED


def test_list_is_newest_first() -> None:
    registry = _registry()
    ids = [_run(registry.create("Uni", f"C{i}", i, OWNER)).id for i in range(3)]
    assert [c.id for c in _run(registry.list_all())] == list(reversed(ids))


def test_equal_timestamps_list_later_indexed_first() -> None:
    registry = CredentialRegistry(InMemoryBlobStore(), clock=lambda: 1_700_000_000.0)
    a = _run(registry.create("Uni", "A", 1, OWNER))
    b = _run(registry.create("Uni", "B", 2, OWNER))
    assert [c.id for c in _run(registry.list_all())] == [b.id, a.id]


def test_duplicate_index_entries_are_listed_once() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    store._blobs[INDEX_KEY] = json.dumps([created.id, created.id]).encode()

    assert len(_run(registry.list_all())) == 1


@pytest.mark.parametrize(
    "institution, course, score, owner",
    [
        ("", "CS101", 92, OWNER),
        ("   ", "CS101", 92, OWNER),
        ("MIT", "", 92, OWNER),
        ("MIT", "CS101", None, OWNER),
        ("MIT", "CS101", 92, ""),
    ],
)
def test_create_rejects_missing_fields(institution, course, score, owner) -> None:
    store = InMemoryBlobStore()
    with pytest.raises(ValueError):
        _run(_registry(store).create(institution, course, score, owner))
    assert store._blobs == {}


def test_create_accepts_zero_score() -> None:
    registry = _registry()
    created = _run(registry.create("MIT", "CS101", 0, OWNER))
    assert default_codec.reveal(created.obscured_score) == 0


def test_create_refuses_to_overwrite_corrupt_index() -> None:
    store = InMemoryBlobStore()
    store._blobs[INDEX_KEY] = b"{not json"
    with pytest.raises(MalformedRecord):
        _run(_registry(store).create("MIT", "CS101", 92, OWNER))
    assert store._blobs[INDEX_KEY] == b"{not json"


def test_failed_index_write_leaves_record_unlisted() -> None:
    store = _FlakyStore({INDEX_KEY})
    registry = _registry(store)
    with pytest.raises(BackendFailure):
        _run(registry.create("MIT", "CS101", 92, OWNER))

    assert _run(registry.list_all()) == []
    assert any(k.startswith("credential_cred-") for k in store._blobs)


def test_create_failure_is_counted() -> None:
    labels = {"operation": "create", "result": "BackendFailure"}
    before = _get_sample("registry_operations_total", labels)
    with pytest.raises(BackendFailure):
        _run(_registry(_FlakyStore({INDEX_KEY})).create("MIT", "CS101", 92, OWNER))
    assert _get_sample("registry_operations_total", labels) - before == 1


# ---- listing resilience ----


def test_malformed_record_is_skipped_not_raised() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    good = _run(registry.create("MIT", "CS101", 92, OWNER))
    bad = _run(registry.create("MIT", "CS102", 70, OWNER))
    store._blobs[record_key(bad.id)] = b'{"score": 5}'

    before = _get_sample("registry_listing_skips_total", {"reason": "malformed"})
    listed = _run(registry.list_all())
    after = _get_sample("registry_listing_skips_total", {"reason": "malformed"})

    assert [c.id for c in listed] == [good.id]
    assert after - before == 1


def test_indexed_id_without_record_is_skipped() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    good = _run(registry.create("MIT", "CS101", 92, OWNER))
    store._blobs[INDEX_KEY] = json.dumps([good.id, "cred-0-ghost"]).encode()

    assert [c.id for c in _run(registry.list_all())] == [good.id]


def test_record_without_status_reads_as_pending() -> None:
    store = InMemoryBlobStore()
    store._blobs[INDEX_KEY] = b'["legacy"]'
    store._blobs[record_key("legacy")] = json.dumps(
        {
            "score": "FHE-OTI=",
            "timestamp": 1,
            "owner": OWNER,
            "institution": "MIT",
            "course": "CS101",
        }
    ).encode()

    (credential,) = _run(_registry(store).list_all())
    assert credential.status is CredentialStatus.PENDING


@pytest.mark.parametrize("status", [None, ""])
def test_record_with_empty_status_reads_as_pending(status) -> None:
    store = InMemoryBlobStore()
    store._blobs[INDEX_KEY] = b'["legacy"]'
    store._blobs[record_key("legacy")] = json.dumps(
        {
            "score": "FHE-OTI=",
            "timestamp": 1,
            "owner": OWNER,
            "institution": "MIT",
            "course": "CS101",
            "status": status,
        }
    ).encode()

    (credential,) = _run(_registry(store).list_all())
    assert credential.status is CredentialStatus.PENDING


def test_unreadable_index_lists_nothing() -> None:
    store = InMemoryBlobStore()
    store._blobs[INDEX_KEY] = b'{"not": "a list"}'
    assert _run(_registry(store).list_all()) == []


def test_unavailable_store_lists_nothing_and_refuses_writes() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    store.available = False

    assert _run(registry.list_all()) == []
    with pytest.raises(Unavailable):
        _run(registry.create("MIT", "CS102", 80, OWNER))
    with pytest.raises(Unavailable):
        _run(registry.get(created.id))
    with pytest.raises(Unavailable):
        _run(registry.verify(created.id, OWNER))


# ---- transitions ----


def test_non_owner_cannot_transition() -> None:
    registry = _registry()
    created = _run(registry.create("MIT", "CS101", 92, OWNER))

    with pytest.raises(Unauthorized):
        _run(registry.verify(created.id, STRANGER))
    with pytest.raises(Unauthorized):
        _run(registry.reject(created.id, None))
    assert _run(registry.get(created.id)).status is CredentialStatus.PENDING


def test_owner_match_is_case_insensitive() -> None:
    registry = _registry()
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    rejected = _run(registry.reject(created.id, OWNER.lower()))
    assert rejected.status is CredentialStatus.REJECTED


def test_transition_rewrites_only_status() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    index_before = store._blobs[INDEX_KEY]

    _run(registry.verify(created.id, OWNER))

    assert store._blobs[INDEX_KEY] == index_before
    after = _run(registry.get(created.id))
    assert after == Credential(
        id=created.id,
        obscured_score=created.obscured_score,
        timestamp=created.timestamp,
        owner=created.owner,
        institution=created.institution,
        course=created.course,
        status=CredentialStatus.VERIFIED,
    )


def test_transition_preserves_unknown_record_fields() -> None:
    store = InMemoryBlobStore()
    registry = _registry(store)
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    record = json.loads(store._blobs[record_key(created.id)])
    record["issuer_note"] = "honours"
    store._blobs[record_key(created.id)] = json.dumps(record).encode()

    _run(registry.verify(created.id, OWNER))

    rewritten = json.loads(store._blobs[record_key(created.id)])
    assert rewritten["issuer_note"] == "honours"
    assert rewritten["status"] == "verified"


@pytest.mark.parametrize("target", ["pending", "archived"])
def test_transition_to_non_terminal_or_unknown_status_is_illegal(target: str) -> None:
    registry = _registry()
    created = _run(registry.create("MIT", "CS101", 92, OWNER))
    with pytest.raises(IllegalTransition):
        _run(registry.transition(created.id, OWNER, target))


def test_transition_of_unknown_credential_is_not_found() -> None:
    with pytest.raises(NotFound):
        _run(_registry().verify("cred-0-missing", OWNER))


def test_get_malformed_record_raises() -> None:
    store = InMemoryBlobStore()
    store._blobs[record_key("broken")] = b"not json"
    with pytest.raises(MalformedRecord):
        _run(_registry(store).get("broken"))


# ---- helpers ----


def test_parse_index_treats_empty_payload_as_empty_list() -> None:
    assert parse_index(b"") == []
    assert parse_index(b"  ") == []


def test_parse_index_rejects_non_string_ids() -> None:
    with pytest.raises(MalformedRecord):
        parse_index(b"[1, 2]")


def test_new_credential_id_shape() -> None:
    credential_id = new_credential_id(1_700_000_000_123)
    prefix, ms, suffix = credential_id.split("-")
    assert prefix == "cred"
    assert ms == "1700000000123"
    assert len(suffix) == 8
    assert suffix.isalnum() and suffix == suffix.lower()


def _cred(course: str, status: CredentialStatus, institution: str = "MIT") -> Credential:
    return Credential(
        id=course,
        obscured_score="FHE-OTI=",
        timestamp=1,
        owner=OWNER,
        institution=institution,
        course=course,
        status=status,
    )


def test_filter_credentials_by_search_and_status() -> None:
    creds = [
        _cred("CS101", CredentialStatus.PENDING),
        _cred("Math 2", CredentialStatus.VERIFIED),
        _cred("Biology", CredentialStatus.VERIFIED, institution="Stanford"),
    ]
    assert [c.id for c in filter_credentials(creds, "cs")] == ["CS101"]
    assert [c.id for c in filter_credentials(creds, "stan")] == ["Biology"]
    assert [c.id for c in filter_credentials(creds, "", "verified")] == [
        "Math 2",
        "Biology",
    ]
    assert len(filter_credentials(creds, "", "all")) == 3
    assert len(filter_credentials(creds)) == 3


def test_count_by_status_includes_every_status() -> None:
    creds = [
        _cred("a", CredentialStatus.VERIFIED),
        _cred("b", CredentialStatus.VERIFIED),
        _cred("c", CredentialStatus.PENDING),
    ]
    assert count_by_status(creds) == {"pending": 1, "verified": 2, "rejected": 0}
    assert count_by_status([]) == {"pending": 0, "verified": 0, "rejected": 0}


# ---- index race ----


class _StaleIndexStore(InMemoryBlobStore):
    """Serves the index as it was before any write, as a second writer would see it."""

    def __init__(self) -> None:
        super().__init__()
        self.stale_index: bytes | None = None

    async def get_data(self, key: str) -> bytes:
        if key == INDEX_KEY and self.stale_index is not None:
            return self.stale_index
        return await super().get_data(key)


def test_interleaved_creates_lose_one_index_entry() -> None:
    store = _StaleIndexStore()
    registry = _registry(store)
    store.stale_index = b""  # both writers read the empty index

    first = _run(registry.create("MIT", "CS101", 92, OWNER))
    second = _run(registry.create("MIT", "CS102", 80, OWNER))
    store.stale_index = None

    # Both records were written; the second index write replaced the first.
    assert record_key(first.id) in store._blobs
    assert record_key(second.id) in store._blobs
    assert [c.id for c in _run(registry.list_all())] == [second.id]
