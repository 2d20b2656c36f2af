"""Supplier routes - inbox, RFQ detail and bid submission."""
from fastapi import APIRouter, Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from audit import audit_log
from database import get_session
from dependencies import require_supplier
from models import ActorContext, BidCreate, BidRead, InboxResponse, SupplierRfqDetail, User
from services import bidding

router = APIRouter(prefix="/supplier", tags=["supplier"])


@router.get("/inbox", response_model=InboxResponse)
async def get_inbox(
    actor: ActorContext = Depends(require_supplier),
    session: AsyncSession = Depends(get_session),
):
    return await bidding.supplier_inbox(session, actor)


@router.get("/rfqs/{rfq_id}", response_model=SupplierRfqDetail)
async def get_rfq(
    rfq_id: int,
    actor: ActorContext = Depends(require_supplier),
    session: AsyncSession = Depends(get_session),
):
    """RFQ detail for a recipient supplier, with their own bid if any."""
    return await bidding.get_supplier_rfq(session, actor, rfq_id)


@router.post("/rfqs/{rfq_id}/bids", response_model=BidRead, status_code=201)
async def submit_bid(
    rfq_id: int,
    body: BidCreate,
    request: Request,
    actor: ActorContext = Depends(require_supplier),
    session: AsyncSession = Depends(get_session),
):
    bid = await bidding.submit_bid(session, actor, rfq_id, body)
    await audit_log(
        session=session,
        action="bid.submit",
        user_id=actor.user_id,
        resource_type="bid",
        resource_id=str(bid.id),
        details={"rfq_id": rfq_id, "price": bid.price},
        request=request,
    )
    user = await session.get(User, actor.user_id)
    return BidRead.model_validate(bid).model_copy(update={"supplier_name": user.display_name if user else None})
