"""
RFQ lifecycle: draft -> sent -> selected.

Every transition is a conditional UPDATE checked by its affected-row count, so
a concurrent second send or select observes InvalidTransition instead of
overwriting the first. Failed transitions roll back and leave no rows behind.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from exceptions import (
    BidNotFoundError,
    InvalidTransitionError,
    NoMatchingSuppliersError,
    NotAuthorizedError,
    ResourceNotFoundError,
    ValidationError,
)
from models import (
    ROLE_CONTRACTOR,
    RFQ_DRAFT,
    RFQ_SELECTED,
    RFQ_SENT,
    ActorContext,
    Bid,
    Rfq,
    RfqRead,
    RfqRecipient,
    RfqSummary,
    SendOverrides,
    StructuredRfq,
)
from observability.metrics import record_business_event
from services.matching import MatchPolicy, load_supplier_profiles, match_suppliers

logger = logging.getLogger(__name__)


def apply_overrides(structured: StructuredRfq, overrides: Optional[SendOverrides]) -> StructuredRfq:
    """Backfill empty structured fields from manually entered values. Parsed values win."""
    if overrides is None:
        return structured
    delivery = structured.delivery.model_copy(
        update={
            "city": structured.delivery.city.strip() or (overrides.city or ""),
            "zip": structured.delivery.zip.strip() or (overrides.zip or ""),
        }
    )
    return structured.model_copy(
        update={
            "category": structured.category.strip() or (overrides.category or ""),
            "needed_by": structured.needed_by.strip() or (overrides.needed_by or ""),
            "delivery": delivery,
        }
    )


def _prepare_for_send(structured: StructuredRfq, overrides: Optional[SendOverrides]) -> StructuredRfq:
    prepared = apply_overrides(structured, overrides).normalized()
    missing = prepared.missing_send_fields()
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            detail={"missing": missing},
        )
    return prepared


async def _match(session: AsyncSession, structured: StructuredRfq, policy: Optional[MatchPolicy]) -> List[int]:
    policy = policy or MatchPolicy.from_env()
    profiles = await load_supplier_profiles(session, structured.category, policy)
    matched = sorted(match_suppliers(structured.category, structured.delivery.city, profiles, policy))
    if not matched:
        record_business_event("rfq_send_no_match")
        logger.info(
            "No matching suppliers",
            extra={"category": structured.category, "city": structured.delivery.city},
        )
        raise NoMatchingSuppliersError(
            detail={"category": structured.category, "city": structured.delivery.city},
        )
    return matched


async def get_rfq_for_contractor(session: AsyncSession, actor: ActorContext, rfq_id: int) -> Rfq:
    """Load an RFQ owned by the calling contractor."""
    actor.require_role(ROLE_CONTRACTOR)
    rfq = await session.get(Rfq, rfq_id)
    if not rfq:
        raise ResourceNotFoundError("RFQ not found", detail={"rfq_id": rfq_id})
    if rfq.contractor_id != actor.user_id:
        raise NotAuthorizedError("Only the owning contractor can access this RFQ", detail={"rfq_id": rfq_id})
    return rfq


async def create_draft(
    session: AsyncSession,
    actor: ActorContext,
    raw_text: str,
    structured: Optional[StructuredRfq] = None,
) -> Rfq:
    actor.require_role(ROLE_CONTRACTOR)
    payload = (structured or StructuredRfq.empty()).normalized()

    rfq = Rfq(
        contractor_id=actor.user_id,
        status=RFQ_DRAFT,
        raw_text=raw_text,
        structured_data=payload.model_dump(),
        matched_supplier_ids=[],
    )
    session.add(rfq)
    await session.commit()
    await session.refresh(rfq)

    record_business_event("rfq_created")
    logger.info("RFQ draft created", extra={"rfq_id": rfq.id, "contractor_id": actor.user_id})
    return rfq


async def create_and_send(
    session: AsyncSession,
    actor: ActorContext,
    raw_text: str,
    structured: Optional[StructuredRfq] = None,
    overrides: Optional[SendOverrides] = None,
    policy: Optional[MatchPolicy] = None,
) -> Rfq:
    """
    Create an RFQ and send it in one transaction.

    Matching runs before anything is written, so a failed validation or an
    empty match persists nothing.
    """
    actor.require_role(ROLE_CONTRACTOR)
    prepared = _prepare_for_send(structured or StructuredRfq.empty(), overrides)
    matched = await _match(session, prepared, policy)

    now = datetime.utcnow()
    rfq = Rfq(
        contractor_id=actor.user_id,
        status=RFQ_SENT,
        raw_text=raw_text,
        structured_data=prepared.model_dump(),
        matched_supplier_ids=matched,
        created_at=now,
        sent_at=now,
    )
    session.add(rfq)
    await session.flush()
    session.add_all([RfqRecipient(rfq_id=rfq.id, supplier_id=supplier_id) for supplier_id in matched])
    await session.commit()
    await session.refresh(rfq)

    record_business_event("rfq_created")
    record_business_event("rfq_sent")
    logger.info("RFQ created and sent", extra={"rfq_id": rfq.id, "recipients": len(matched)})
    return rfq


async def update_draft(session: AsyncSession, actor: ActorContext, rfq_id: int, structured: StructuredRfq) -> Rfq:
    """Replace a draft's structured payload. Rejected once the RFQ has been sent."""
    rfq = await get_rfq_for_contractor(session, actor, rfq_id)
    if rfq.status != RFQ_DRAFT:
        raise InvalidTransitionError("Only draft RFQs can be edited", detail={"rfq_id": rfq_id, "status": rfq.status})

    result = await session.execute(
        update(Rfq)
        .where(Rfq.id == rfq_id, Rfq.status == RFQ_DRAFT)
        .values(structured_data=structured.normalized().model_dump(), updated_at=datetime.utcnow())
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidTransitionError("Only draft RFQs can be edited", detail={"rfq_id": rfq_id})

    await session.commit()
    await session.refresh(rfq)
    return rfq


async def send_rfq(
    session: AsyncSession,
    actor: ActorContext,
    rfq_id: int,
    overrides: Optional[SendOverrides] = None,
    policy: Optional[MatchPolicy] = None,
) -> Rfq:
    """
    Transition a draft to sent.

    Raises:
        InvalidTransitionError: RFQ is not (or no longer) a draft
        ValidationError: category, delivery city or needed-by is still empty
        NoMatchingSuppliersError: nobody would receive the RFQ
    """
    rfq = await get_rfq_for_contractor(session, actor, rfq_id)
    if rfq.status != RFQ_DRAFT:
        raise InvalidTransitionError("RFQ has already been sent", detail={"rfq_id": rfq_id, "status": rfq.status})

    prepared = _prepare_for_send(rfq.structured, overrides)
    matched = await _match(session, prepared, policy)

    now = datetime.utcnow()
    result = await session.execute(
        update(Rfq)
        .where(Rfq.id == rfq_id, Rfq.status == RFQ_DRAFT)
        .values(
            status=RFQ_SENT,
            structured_data=prepared.model_dump(),
            matched_supplier_ids=matched,
            sent_at=now,
            updated_at=now,
        )
    )
    if result.rowcount != 1:
        # Lost a race with another send
        await session.rollback()
        raise InvalidTransitionError("RFQ has already been sent", detail={"rfq_id": rfq_id})

    session.add_all([RfqRecipient(rfq_id=rfq_id, supplier_id=supplier_id) for supplier_id in matched])
    await session.commit()
    await session.refresh(rfq)

    record_business_event("rfq_sent")
    logger.info("RFQ sent", extra={"rfq_id": rfq_id, "recipients": len(matched)})
    return rfq


async def select_bid(session: AsyncSession, actor: ActorContext, rfq_id: int, bid_id: int) -> Rfq:
    """
    Pick the winning bid. RFQ and bid are updated in one transaction conditioned
    on status == sent at commit time; either update missing rolls both back.
    """
    rfq = await get_rfq_for_contractor(session, actor, rfq_id)
    if rfq.status != RFQ_SENT:
        raise InvalidTransitionError(
            "Only sent RFQs can have a winning bid selected",
            detail={"rfq_id": rfq_id, "status": rfq.status},
        )

    bid = await session.get(Bid, bid_id)
    if not bid or bid.rfq_id != rfq_id:
        raise BidNotFoundError("Bid not found for this RFQ", detail={"rfq_id": rfq_id, "bid_id": bid_id})

    now = datetime.utcnow()
    rfq_result = await session.execute(
        update(Rfq)
        .where(Rfq.id == rfq_id, Rfq.status == RFQ_SENT)
        .values(status=RFQ_SELECTED, selected_bid_id=bid_id, selected_at=now, updated_at=now)
    )
    if rfq_result.rowcount != 1:
        await session.rollback()
        raise InvalidTransitionError("A winning bid has already been selected", detail={"rfq_id": rfq_id})

    bid_result = await session.execute(
        update(Bid).where(Bid.id == bid_id, Bid.rfq_id == rfq_id).values(selected=True)
    )
    if bid_result.rowcount != 1:
        await session.rollback()
        raise BidNotFoundError("Bid not found for this RFQ", detail={"rfq_id": rfq_id, "bid_id": bid_id})

    await session.commit()
    await session.refresh(rfq)
    await session.refresh(bid)

    record_business_event("bid_selected")
    logger.info("Bid selected", extra={"rfq_id": rfq_id, "bid_id": bid_id})
    return rfq


async def list_contractor_rfqs(session: AsyncSession, actor: ActorContext) -> List[RfqSummary]:
    """Dashboard listing: the contractor's RFQs, newest first, with bid counts."""
    actor.require_role(ROLE_CONTRACTOR)
    result = await session.exec(
        select(Rfq)
        .where(Rfq.contractor_id == actor.user_id)
        .order_by(Rfq.created_at.desc(), Rfq.id.desc())
    )
    rfqs = result.all()
    if not rfqs:
        return []

    counts_result = await session.exec(
        select(Bid.rfq_id, func.count(Bid.id))
        .where(Bid.rfq_id.in_([r.id for r in rfqs]))
        .group_by(Bid.rfq_id)
    )
    counts: Dict[int, int] = {rfq_id: count for rfq_id, count in counts_result.all()}

    return [
        RfqSummary(**RfqRead.from_rfq(rfq).model_dump(), bid_count=counts.get(rfq.id, 0))
        for rfq in rfqs
    ]
