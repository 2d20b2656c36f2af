"""
Bid submission, listing and the supplier side of a sent RFQ.

One bid per (rfq, supplier) is enforced by the uq_bid_rfq_supplier constraint;
the read-before-insert check only gives sequential callers a cleaner error.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from exceptions import (
    DuplicateBidError,
    InvalidTransitionError,
    NotAuthorizedError,
    ResourceNotFoundError,
    ValidationError,
)
from models import (
    BID_SORTS,
    OUTCOME_BID_SUBMITTED,
    OUTCOME_LOST,
    OUTCOME_OPEN,
    OUTCOME_WON,
    RFQ_SELECTED,
    RFQ_SENT,
    ROLE_SUPPLIER,
    ActorContext,
    AIRecommendation,
    Bid,
    BidCreate,
    BidRead,
    InboxItem,
    InboxResponse,
    Rfq,
    RfqRead,
    RfqRecipient,
    SupplierRfqDetail,
    User,
)
from observability.metrics import record_business_event
from services import llm
from services.rfq_lifecycle import get_rfq_for_contractor
from utils.text import format_title

logger = logging.getLogger(__name__)


def derive_outcome(rfq: Rfq, my_bid: Optional[Bid]) -> str:
    """won / lost once a winner is picked, otherwise bid_submitted or open."""
    if rfq.status == RFQ_SELECTED:
        if my_bid is not None and rfq.selected_bid_id == my_bid.id:
            return OUTCOME_WON
        return OUTCOME_LOST
    if my_bid is not None:
        return OUTCOME_BID_SUBMITTED
    return OUTCOME_OPEN


def sort_bids(bids: Sequence[BidRead], sort: Optional[str] = None) -> List[BidRead]:
    """
    Order bids for the contractor's comparison view.

    price_asc / price_desc sort numerically, lead_time_asc compares the lead-time
    text as-is. No sort keeps creation order. Ties keep creation order.
    """
    if not sort:
        return list(bids)
    if sort == "price_asc":
        return sorted(bids, key=lambda b: b.price)
    if sort == "price_desc":
        return sorted(bids, key=lambda b: -b.price)
    if sort == "lead_time_asc":
        return sorted(bids, key=lambda b: b.lead_time or "")
    raise ValidationError(f"Unknown sort '{sort}'", detail={"allowed": list(BID_SORTS)})


def _require_supplier(actor: ActorContext) -> None:
    actor.require_role(ROLE_SUPPLIER)
    if not actor.onboarded:
        raise NotAuthorizedError("Complete onboarding before responding to RFQs")


async def _get_rfq_for_recipient(session: AsyncSession, actor: ActorContext, rfq_id: int) -> Rfq:
    rfq = await session.get(Rfq, rfq_id)
    if not rfq:
        raise ResourceNotFoundError("RFQ not found", detail={"rfq_id": rfq_id})
    if actor.user_id not in (rfq.matched_supplier_ids or []):
        raise NotAuthorizedError("You were not matched to this RFQ", detail={"rfq_id": rfq_id})
    return rfq


async def _find_supplier_bid(session: AsyncSession, rfq_id: int, supplier_id: int) -> Optional[Bid]:
    result = await session.exec(
        select(Bid).where(Bid.rfq_id == rfq_id, Bid.supplier_id == supplier_id)
    )
    return result.first()


async def submit_bid(session: AsyncSession, actor: ActorContext, rfq_id: int, data: BidCreate) -> Bid:
    """
    Record a matched supplier's bid.

    Raises:
        NotAuthorizedError: caller is not a recipient of the RFQ
        InvalidTransitionError: RFQ is no longer open for bids
        ValidationError: negative price or empty lead time
        DuplicateBidError: the supplier already bid on this RFQ
    """
    _require_supplier(actor)
    rfq = await _get_rfq_for_recipient(session, actor, rfq_id)
    if rfq.status != RFQ_SENT:
        raise InvalidTransitionError(
            "This RFQ is no longer accepting bids",
            detail={"rfq_id": rfq_id, "status": rfq.status},
        )

    if data.price is None or not math.isfinite(data.price) or data.price < 0:
        raise ValidationError("Price must be a finite, non-negative number", detail={"field": "price"})
    lead_time = (data.lead_time or "").strip()
    if not lead_time:
        raise ValidationError("Lead time is required", detail={"field": "lead_time"})

    if await _find_supplier_bid(session, rfq_id, actor.user_id):
        record_business_event("bid_duplicate_rejected")
        raise DuplicateBidError(detail={"rfq_id": rfq_id})

    bid = Bid(
        rfq_id=rfq_id,
        supplier_id=actor.user_id,
        price=data.price,
        lead_time=lead_time,
        delivery_window=(data.delivery_window or "").strip() or None,
        notes=(data.notes or "").strip() or None,
    )
    session.add(bid)
    try:
        await session.commit()
    except IntegrityError:
        # Concurrent submission won the unique constraint
        await session.rollback()
        record_business_event("bid_duplicate_rejected")
        raise DuplicateBidError(detail={"rfq_id": rfq_id})
    await session.refresh(bid)

    record_business_event("bid_submitted")
    logger.info("Bid submitted", extra={"rfq_id": rfq_id, "bid_id": bid.id, "supplier_id": actor.user_id})
    return bid


async def get_supplier_rfq(session: AsyncSession, actor: ActorContext, rfq_id: int) -> SupplierRfqDetail:
    _require_supplier(actor)
    rfq = await _get_rfq_for_recipient(session, actor, rfq_id)
    my_bid = await _find_supplier_bid(session, rfq_id, actor.user_id)

    my_bid_read = None
    if my_bid is not None:
        user = await session.get(User, actor.user_id)
        my_bid_read = BidRead.model_validate(my_bid).model_copy(
            update={"supplier_name": user.display_name if user else None}
        )

    return SupplierRfqDetail(
        rfq=RfqRead.from_rfq(rfq),
        my_bid=my_bid_read,
        outcome=derive_outcome(rfq, my_bid),
    )


async def supplier_inbox(session: AsyncSession, actor: ActorContext) -> InboxResponse:
    """Sent and selected RFQs addressed to the supplier, newest first."""
    _require_supplier(actor)
    user = await session.get(User, actor.user_id)

    result = await session.exec(
        select(Rfq)
        .join(RfqRecipient, RfqRecipient.rfq_id == Rfq.id)
        .where(RfqRecipient.supplier_id == actor.user_id, Rfq.status.in_([RFQ_SENT, RFQ_SELECTED]))
        .order_by(Rfq.created_at.desc(), Rfq.id.desc())
    )
    rfqs = result.all()

    my_bids = {}
    if rfqs:
        bids_result = await session.exec(
            select(Bid).where(Bid.supplier_id == actor.user_id, Bid.rfq_id.in_([r.id for r in rfqs]))
        )
        my_bids = {bid.rfq_id: bid for bid in bids_result.all()}

    items = []
    for rfq in rfqs:
        structured = rfq.structured
        my_bid = my_bids.get(rfq.id)
        items.append(
            InboxItem(
                **RfqRead.from_rfq(rfq).model_dump(),
                category_display=format_title(structured.category),
                city_display=format_title(structured.delivery.city),
                my_bid_id=my_bid.id if my_bid else None,
                outcome=derive_outcome(rfq, my_bid),
            )
        )

    return InboxResponse(
        items=items,
        categories=list(user.categories or []) if user else [],
        service_area=list(user.service_area or []) if user else [],
    )


async def list_bids_for_rfq(
    session: AsyncSession,
    actor: ActorContext,
    rfq_id: int,
    sort: Optional[str] = None,
) -> List[BidRead]:
    """Bids on the contractor's RFQ with supplier display names."""
    await get_rfq_for_contractor(session, actor, rfq_id)

    result = await session.exec(
        select(Bid, User)
        .join(User, User.id == Bid.supplier_id)
        .where(Bid.rfq_id == rfq_id)
        .order_by(Bid.created_at, Bid.id)
    )
    rows: List[Tuple[Bid, User]] = result.all()
    bids = [
        BidRead.model_validate(bid).model_copy(update={"supplier_name": user.display_name})
        for bid, user in rows
    ]
    return sort_bids(bids, sort)


async def recommend_bid(session: AsyncSession, actor: ActorContext, rfq_id: int) -> "llm.LLMResult[AIRecommendation]":
    """Ask the ranking model for a winner. The result is returned, never stored."""
    rfq = await get_rfq_for_contractor(session, actor, rfq_id)
    bids = await list_bids_for_rfq(session, actor, rfq_id)
    if not bids:
        raise ValidationError("No bids to analyze", detail={"rfq_id": rfq_id})
    return await llm.rank_bids(rfq.structured, bids)
