"""Credential registry endpoints.

- GET  /v1/credentials                  : list, newest first (search/status filters)
- GET  /v1/credentials/stats            : counts per status
- GET  /v1/credentials/{id}             : one credential
- POST /v1/credentials                  : create (owner = calling wallet)
- POST /v1/credentials/{id}/verify      : pending -> verified (owner only)
- POST /v1/credentials/{id}/reject      : pending -> rejected (owner only)

Reads are public: scores are stored obscured, so listing exposes nothing
the contract store does not already expose.  Every write sets the
transaction status notification and appends to the activity log, on
success and on failure alike.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from edupassport.api.dependencies import require_wallet, to_http_error
from edupassport.core.errors import RegistryError
from edupassport.models.credential import Credential, CredentialStatus
from edupassport.models.principal import WalletPrincipal
from edupassport.services.registry import count_by_status, filter_credentials
from edupassport.services.state import AppState, get_app_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])

StatusFilter = Literal["all", "pending", "verified", "rejected"]


class CredentialOut(BaseModel):
    id: str
    obscured_score: str
    timestamp: int
    owner: str
    institution: str
    course: str
    status: CredentialStatus

    @classmethod
    def from_credential(cls, credential: Credential) -> CredentialOut:
        return cls(
            id=credential.id,
            obscured_score=credential.obscured_score,
            timestamp=credential.timestamp,
            owner=credential.owner,
            institution=credential.institution,
            course=credential.course,
            status=credential.status,
        )


class CredentialCreateIn(BaseModel):
    institution: str = Field(min_length=1, max_length=200)
    course: str = Field(min_length=1, max_length=200)
    score: int | float

    @field_validator("score")
    @classmethod
    def score_in_range(cls, v: int | float) -> int | float:
        if not 0 <= v <= 100:
            raise ValueError("score must be between 0 and 100")
        return v


class CredentialStatsOut(BaseModel):
    verified: int
    pending: int
    rejected: int


@router.get("", response_model=list[CredentialOut])
async def list_credentials(
    state: Annotated[AppState, Depends(get_app_state)],
    search: Annotated[str, Query(max_length=200)] = "",
    status_filter: Annotated[StatusFilter, Query(alias="status")] = "all",
) -> list[CredentialOut]:
    credentials = await state.registry.list_all()
    state.activity.record("Loaded credentials list")
    return [
        CredentialOut.from_credential(c)
        for c in filter_credentials(credentials, search, status_filter)
    ]


@router.get("/stats", response_model=CredentialStatsOut)
async def credential_stats(
    state: Annotated[AppState, Depends(get_app_state)],
) -> CredentialStatsOut:
    return CredentialStatsOut(**count_by_status(await state.registry.list_all()))


@router.get("/{credential_id}", response_model=CredentialOut)
async def get_credential(
    credential_id: str,
    state: Annotated[AppState, Depends(get_app_state)],
) -> CredentialOut:
    try:
        credential = await state.registry.get(credential_id)
    except RegistryError as e:
        raise to_http_error(e) from None
    return CredentialOut.from_credential(credential)


@router.post("", response_model=CredentialOut, status_code=status.HTTP_201_CREATED)
async def create_credential(
    body: CredentialCreateIn,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> CredentialOut:
    state.notifications.pending("Obscuring score and submitting credential...")
    try:
        credential = await state.registry.create(
            body.institution, body.course, body.score, principal.address
        )
    except (RegistryError, ValueError) as e:
        logger.warning("Credential submission failed for %s: %s", principal.address, e)
        state.notifications.failure("Submission", e)
        state.activity.record("Failed to submit credential")
        raise to_http_error(e) from None

    state.notifications.success("Credential submitted")
    state.activity.record("Submitted new credential")
    return CredentialOut.from_credential(credential)


_TRANSITION_WORDING = {
    CredentialStatus.VERIFIED: ("Verification", "verify", "Verified"),
    CredentialStatus.REJECTED: ("Rejection", "reject", "Rejected"),
}


async def _transition(
    state: AppState,
    credential_id: str,
    principal: WalletPrincipal,
    target: CredentialStatus,
) -> CredentialOut:
    action, verb, past = _TRANSITION_WORDING[target]

    state.notifications.pending(f"{action} in progress...")
    try:
        credential = await state.registry.transition(
            credential_id, principal.address, target
        )
    except RegistryError as e:
        state.notifications.failure(action, e)
        state.activity.record(f"Failed to {verb} credential")
        raise to_http_error(e) from None

    state.notifications.success(f"{action} completed")
    state.activity.record(f"{past} credential")
    return CredentialOut.from_credential(credential)


@router.post("/{credential_id}/verify", response_model=CredentialOut)
async def verify_credential(
    credential_id: str,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> CredentialOut:
    return await _transition(state, credential_id, principal, CredentialStatus.VERIFIED)


@router.post("/{credential_id}/reject", response_model=CredentialOut)
async def reject_credential(
    credential_id: str,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> CredentialOut:
    return await _transition(state, credential_id, principal, CredentialStatus.REJECTED)
