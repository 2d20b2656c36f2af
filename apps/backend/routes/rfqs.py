"""Contractor RFQ routes - structuring, draft editing, sending, bid comparison and selection."""
from fastapi import APIRouter, Depends, Query, Request
from typing import List, Optional
from sqlmodel.ext.asyncio.session import AsyncSession

from audit import audit_log
from database import get_session
from dependencies import require_contractor
from exceptions import ValidationError
from models import (
    ActorContext,
    AIRecommendation,
    BidRead,
    RfqCreate,
    RfqRead,
    RfqSummary,
    RfqUpdate,
    SelectBidRequest,
    SendOverrides,
    StructuredRfq,
    StructureRequest,
    StructureResponse,
)
from services import bidding, llm, rfq_lifecycle

router = APIRouter(prefix="/rfqs", tags=["rfqs"])


@router.post("/structure", response_model=StructureResponse)
async def structure_rfq(
    body: StructureRequest,
    actor: ActorContext = Depends(require_contractor),
):
    """
    Structure free text into the RFQ schema.

    A failed LLM call is not an HTTP error: the response carries success=false,
    the message, and an empty payload the contractor can fill in by hand.
    """
    raw_text = body.raw_text.strip()
    if not raw_text:
        raise ValidationError("Please describe what you need.", detail={"field": "raw_text"})

    result = await llm.structure_rfq(raw_text)
    return StructureResponse(
        success=result.success,
        data=result.data if result.success else StructuredRfq.empty(),
        error=result.error,
        error_type=result.error_type,
    )


@router.post("", response_model=RfqRead, status_code=201)
async def create_rfq(
    body: RfqCreate,
    request: Request,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    """Create a draft, or with send_now=true create and send it in one step."""
    raw_text = body.raw_text.strip()
    if not raw_text:
        raise ValidationError("Please describe what you need.", detail={"field": "raw_text"})

    if body.send_now:
        rfq = await rfq_lifecycle.create_and_send(
            session, actor, raw_text, body.structured_data, overrides=body.overrides
        )
    else:
        rfq = await rfq_lifecycle.create_draft(session, actor, raw_text, body.structured_data)

    await audit_log(
        session=session,
        action="rfq.create",
        user_id=actor.user_id,
        resource_type="rfq",
        resource_id=str(rfq.id),
        details={"status": rfq.status},
        request=request,
    )
    if body.send_now:
        await audit_log(
            session=session,
            action="rfq.send",
            user_id=actor.user_id,
            resource_type="rfq",
            resource_id=str(rfq.id),
            details={"recipients": len(rfq.matched_supplier_ids)},
            request=request,
        )
    return RfqRead.from_rfq(rfq)


@router.get("", response_model=List[RfqSummary])
async def list_rfqs(
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    return await rfq_lifecycle.list_contractor_rfqs(session, actor)


@router.get("/{rfq_id}", response_model=RfqRead)
async def get_rfq(
    rfq_id: int,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    rfq = await rfq_lifecycle.get_rfq_for_contractor(session, actor, rfq_id)
    return RfqRead.from_rfq(rfq)


@router.patch("/{rfq_id}", response_model=RfqRead)
async def update_rfq(
    rfq_id: int,
    body: RfqUpdate,
    request: Request,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    """Edit a draft's structured payload."""
    rfq = await rfq_lifecycle.update_draft(session, actor, rfq_id, body.structured_data)
    await audit_log(
        session=session,
        action="rfq.update",
        user_id=actor.user_id,
        resource_type="rfq",
        resource_id=str(rfq.id),
        request=request,
    )
    return RfqRead.from_rfq(rfq)


@router.post("/{rfq_id}/send", response_model=RfqRead)
async def send_rfq(
    rfq_id: int,
    request: Request,
    overrides: Optional[SendOverrides] = None,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    """Match suppliers and send a draft. Body values backfill empty structured fields."""
    rfq = await rfq_lifecycle.send_rfq(session, actor, rfq_id, overrides=overrides)
    await audit_log(
        session=session,
        action="rfq.send",
        user_id=actor.user_id,
        resource_type="rfq",
        resource_id=str(rfq.id),
        details={"recipients": len(rfq.matched_supplier_ids)},
        request=request,
    )
    return RfqRead.from_rfq(rfq)


@router.get("/{rfq_id}/bids", response_model=List[BidRead])
async def list_bids(
    rfq_id: int,
    sort: Optional[str] = Query(None, description="price_asc, price_desc or lead_time_asc"),
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    return await bidding.list_bids_for_rfq(session, actor, rfq_id, sort)


@router.post("/{rfq_id}/recommendation", response_model=AIRecommendation)
async def recommend_bid(
    rfq_id: int,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    """AI pick among the submitted bids. Not persisted."""
    result = await bidding.recommend_bid(session, actor, rfq_id)
    return result.raise_for_error()


@router.post("/{rfq_id}/select", response_model=RfqRead)
async def select_bid(
    rfq_id: int,
    body: SelectBidRequest,
    request: Request,
    actor: ActorContext = Depends(require_contractor),
    session: AsyncSession = Depends(get_session),
):
    rfq = await rfq_lifecycle.select_bid(session, actor, rfq_id, body.bid_id)
    await audit_log(
        session=session,
        action="bid.select",
        user_id=actor.user_id,
        resource_type="bid",
        resource_id=str(body.bid_id),
        details={"rfq_id": rfq.id},
        request=request,
    )
    return RfqRead.from_rfq(rfq)
