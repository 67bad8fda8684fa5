from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, field_validator


class CredentialStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CredentialStatus.PENDING


@dataclass(frozen=True, slots=True)
class Credential:
    """An educational credential whose score is stored obscured.

    Everything except ``status`` is write-once at creation.
    """

    id: str
    obscured_score: str
    timestamp: int  # seconds since epoch
    owner: str  # wallet address, compared case-insensitively
    institution: str
    course: str
    status: CredentialStatus = CredentialStatus.PENDING

    def is_owned_by(self, address: str | None) -> bool:
        return address is not None and address.lower() == self.owner.lower()


class CredentialRecord(BaseModel):
    """Wire format of a credential blob: ``credential_<id>`` -> this JSON.

    Field names are fixed; ``score`` holds the obscured token.  Records
    written by older clients may lack ``status`` (or hold null or "")
    and read as pending.
    Extra fields are kept so a status rewrite does not drop them.
    """

    model_config = ConfigDict(extra="allow")

    score: StrictStr
    timestamp: StrictInt
    owner: StrictStr
    institution: StrictStr
    course: StrictStr
    status: CredentialStatus = CredentialStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def empty_status_is_pending(cls, v: object) -> object:
        # Older clients wrote null or "" and read it back as pending.
        return v or CredentialStatus.PENDING

    @classmethod
    def from_credential(cls, credential: Credential) -> CredentialRecord:
        return cls(
            score=credential.obscured_score,
            timestamp=credential.timestamp,
            owner=credential.owner,
            institution=credential.institution,
            course=credential.course,
            status=credential.status,
        )

    def to_credential(self, credential_id: str) -> Credential:
        return Credential(
            id=credential_id,
            obscured_score=self.score,
            timestamp=self.timestamp,
            owner=self.owner,
            institution=self.institution,
            course=self.course,
            status=self.status,
        )

    def to_blob(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
