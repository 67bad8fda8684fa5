"""Reveal endpoints.

- GET    /v1/reveal/challenge               : message the wallet must sign
- POST   /v1/credentials/{id}/reveal        : sign-to-reveal (owner only)
- GET    /v1/credentials/{id}/reveal        : the open reveal session, if any
- DELETE /v1/credentials/{id}/reveal        : hide the plaintext again

The client fetches the challenge, has the wallet sign it and posts the
signature.  Posting without a signature is how a declined prompt
reaches us.  The plaintext lives only in the reveal session, which is
replaced by the next reveal and dropped on hide.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from edupassport.api.dependencies import require_wallet, to_http_error
from edupassport.core.errors import RegistryError, Unauthorized
from edupassport.models.principal import WalletPrincipal
from edupassport.services.reveal import PresentedSignatureSigner
from edupassport.services.state import AppState, RevealSession, get_app_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reveal"])


class ChallengeOut(BaseModel):
    message: str
    public_key: str
    contract_address: str
    chain_id: int
    start_timestamp: int
    duration_days: int


class RevealIn(BaseModel):
    signature: str | None = Field(default=None, max_length=1000)


class RevealOut(BaseModel):
    credential_id: str
    score: int | float


@router.get("/v1/reveal/challenge", response_model=ChallengeOut)
async def reveal_challenge(
    state: Annotated[AppState, Depends(get_app_state)],
) -> ChallengeOut:
    params = state.reveal.params
    return ChallengeOut(
        message=state.reveal.challenge,
        public_key=params.public_key,
        contract_address=params.contract_address,
        chain_id=params.chain_id,
        start_timestamp=params.start_timestamp,
        duration_days=params.duration_days,
    )


@router.post("/v1/credentials/{credential_id}/reveal", response_model=RevealOut)
async def reveal_score(
    credential_id: str,
    body: RevealIn,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> RevealOut:
    try:
        credential = await state.registry.get(credential_id)
        if not principal.owns(credential.owner):
            logger.warning(
                "Reveal of %s refused for non-owner %s",
                credential_id,
                principal.address,
                extra={"credential_id": credential_id, "wallet": principal.address},
            )
            raise Unauthorized(f"{principal.address} does not own {credential_id}")
        signer = PresentedSignatureSigner(principal.address, body.signature)
        score = await state.reveal.decrypt_with_signature(
            credential.obscured_score, signer
        )
    except RegistryError as e:
        state.activity.record("Failed to decrypt score")
        raise to_http_error(e) from None

    state.open_reveal(
        RevealSession(credential_id=credential.id, owner=credential.owner, score=score)
    )
    state.activity.record("Decrypted credential score")
    logger.info(
        "Score revealed for %s",
        credential_id,
        extra={"credential_id": credential_id, "wallet": principal.address},
    )
    return RevealOut(credential_id=credential.id, score=score)


@router.get("/v1/credentials/{credential_id}/reveal", response_model=RevealOut)
async def current_reveal(
    credential_id: str,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> RevealOut:
    session = state.reveal_session
    if (
        session is None
        or session.credential_id != credential_id
        or not principal.owns(session.owner)
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No revealed score"
        )
    return RevealOut(credential_id=session.credential_id, score=session.score)


@router.delete(
    "/v1/credentials/{credential_id}/reveal",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def hide_score(
    credential_id: str,
    principal: Annotated[WalletPrincipal, Depends(require_wallet)],
    state: Annotated[AppState, Depends(get_app_state)],
) -> Response:
    session = state.reveal_session
    if (
        session is not None
        and session.credential_id == credential_id
        and not principal.owns(session.owner)
    ):
        raise to_http_error(
            Unauthorized(f"{principal.address} cannot hide {credential_id}")
        )
    state.close_reveal(credential_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
