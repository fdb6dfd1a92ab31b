"""Offer Routes — thin HTTP shell over OfferLifecycle.

Invariants:
    - The caller's role is implied by the route: create/edit/cancel act as sender,
      accept/decline act as receiver
    - A repeated accept answers 200 with already_accepted=true, never an error
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from cosnap.api.dependencies import get_caller_id, get_offer_lifecycle
from cosnap.core.domain_types import FlagId, OfferId, UserId
from cosnap.schemas.offer import (
    AcceptResponse,
    OfferCreate,
    OfferMessageUpdate,
    OfferResponse,
)
from cosnap.services.offer_lifecycle import OfferLifecycle

router = APIRouter(prefix="/api/v1/offers", tags=["offers"])


@router.post(
    "", response_model=OfferResponse, status_code=status.HTTP_201_CREATED,
)
async def create_offer(
    body: OfferCreate,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: OfferLifecycle = Depends(get_offer_lifecycle),
):
    offer = await lifecycle.create(
        caller_id, UserId(body.receiver_id), FlagId(body.flag_id),
        body.message, body.respond_by,
    )
    return OfferResponse.from_offer(offer)


@router.patch("/{offer_id}", response_model=OfferResponse)
async def update_offer_message(
    offer_id: UUID,
    body: OfferMessageUpdate,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: OfferLifecycle = Depends(get_offer_lifecycle),
):
    offer = await lifecycle.update_message(OfferId(offer_id), caller_id, body.message)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/cancel", response_model=OfferResponse)
async def cancel_offer(
    offer_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: OfferLifecycle = Depends(get_offer_lifecycle),
):
    offer = await lifecycle.cancel(OfferId(offer_id), caller_id)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/decline", response_model=OfferResponse)
async def decline_offer(
    offer_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: OfferLifecycle = Depends(get_offer_lifecycle),
):
    offer = await lifecycle.decline(OfferId(offer_id), caller_id)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/accept", response_model=AcceptResponse)
async def accept_offer(
    offer_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    lifecycle: OfferLifecycle = Depends(get_offer_lifecycle),
):
    """Accept as receiver: creates the match and opens a conversation."""
    result = await lifecycle.accept(OfferId(offer_id), caller_id)
    return AcceptResponse.from_result(result)
