"""Dashboard feeds: recent activity and the current transaction status."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from edupassport.services.notifications import NotificationKind
from edupassport.services.state import AppState, get_app_state

router = APIRouter(prefix="/v1", tags=["activity"])


class ActivityOut(BaseModel):
    entries: list[str]
    capacity: int


class TransactionStatusOut(BaseModel):
    status: NotificationKind
    message: str


@router.get("/activity", response_model=ActivityOut)
async def recent_activity(
    state: Annotated[AppState, Depends(get_app_state)],
) -> ActivityOut:
    return ActivityOut(
        entries=state.activity.entries(), capacity=state.activity.capacity
    )


@router.get("/status", response_model=TransactionStatusOut | None)
async def transaction_status(
    state: Annotated[AppState, Depends(get_app_state)],
) -> TransactionStatusOut | None:
    current = state.notifications.current()
    if current is None:
        return None
    return TransactionStatusOut(status=current.status, message=current.message)
