"""Tests for bid submission gates, duplicate rejection, sorting and the supplier inbox."""
import json
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, patch
from sqlmodel import select

from exceptions import (
    DuplicateBidError,
    InvalidTransitionError,
    NotAuthorizedError,
    ValidationError,
)
from models import (
    OUTCOME_BID_SUBMITTED,
    OUTCOME_LOST,
    OUTCOME_OPEN,
    OUTCOME_WON,
    ROLE_SUPPLIER,
    ActorContext,
    Bid,
    BidCreate,
    BidRead,
    StructuredRfq,
)
from services import bidding, rfq_lifecycle


def _payload():
    return StructuredRfq(category="lumber", delivery={"city": "seattle"}, needed_by="Tuesday")


async def _sent_rfq(session, contractor_actor):
    return await rfq_lifecycle.create_and_send(session, contractor_actor, "need lumber", _payload())


async def _bid_count(session):
    return len((await session.exec(select(Bid))).all())


@pytest.mark.asyncio
async def test_submit_bid(session, contractor_actor, supplier_actor):
    rfq = await _sent_rfq(session, contractor_actor)

    bid = await bidding.submit_bid(
        session, supplier_actor, rfq.id,
        BidCreate(price=1200, lead_time=" 2 days ", delivery_window="Mon-Tue", notes=""),
    )

    assert bid.id is not None
    assert bid.price == 1200
    assert bid.lead_time == "2 days"
    assert bid.delivery_window == "Mon-Tue"
    assert bid.notes is None
    assert bid.selected is False


@pytest.mark.asyncio
async def test_submit_bid_unmatched_supplier_rejected(session, contractor_actor, supplier_actor, make_user):
    rfq = await _sent_rfq(session, contractor_actor)
    outsider = await make_user("outsider@example.com", role=ROLE_SUPPLIER, categories=["lumber"], service_area=["boise"])

    with pytest.raises(NotAuthorizedError):
        await bidding.submit_bid(
            session, ActorContext.from_user(outsider), rfq.id, BidCreate(price=900, lead_time="1 day")
        )
    assert await _bid_count(session) == 0


@pytest.mark.asyncio
async def test_submit_bid_on_draft_rejected(session, contractor_actor, supplier_actor):
    rfq = await rfq_lifecycle.create_draft(session, contractor_actor, "need lumber", _payload())

    # Drafts have no recipients yet
    with pytest.raises(NotAuthorizedError):
        await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=900, lead_time="1 day"))


@pytest.mark.asyncio
async def test_submit_bid_requires_onboarded_supplier(session, contractor_actor, supplier):
    rfq = await _sent_rfq(session, contractor_actor)
    actor = ActorContext(user_id=supplier.id, role=ROLE_SUPPLIER, onboarded=False)

    with pytest.raises(NotAuthorizedError):
        await bidding.submit_bid(session, actor, rfq.id, BidCreate(price=900, lead_time="1 day"))


@pytest.mark.asyncio
async def test_submit_bid_contractor_rejected(session, contractor_actor, supplier):
    rfq = await _sent_rfq(session, contractor_actor)

    with pytest.raises(NotAuthorizedError):
        await bidding.submit_bid(session, contractor_actor, rfq.id, BidCreate(price=900, lead_time="1 day"))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "price,lead_time",
    [(-1, "2 days"), (float("nan"), "2 days"), (float("inf"), "2 days"), (100, ""), (100, "   ")],
)
async def test_submit_bid_validation(session, contractor_actor, supplier_actor, price, lead_time):
    rfq = await _sent_rfq(session, contractor_actor)

    with pytest.raises(ValidationError):
        await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=price, lead_time=lead_time))
    assert await _bid_count(session) == 0


@pytest.mark.asyncio
async def test_submit_bid_zero_price_allowed(session, contractor_actor, supplier_actor):
    rfq = await _sent_rfq(session, contractor_actor)
    bid = await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=0, lead_time="today"))
    assert bid.price == 0


@pytest.mark.asyncio
async def test_second_bid_is_duplicate(session, contractor_actor, supplier_actor):
    rfq = await _sent_rfq(session, contractor_actor)
    await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1200, lead_time="2 days"))

    with pytest.raises(DuplicateBidError):
        await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1100, lead_time="3 days"))
    assert await _bid_count(session) == 1


@pytest.mark.asyncio
async def test_unique_constraint_closes_race(session, contractor_actor, supplier_actor):
    """With the read-before-insert check bypassed, the constraint still rejects the second bid."""
    rfq = await _sent_rfq(session, contractor_actor)
    rfq_id = rfq.id
    await bidding.submit_bid(session, supplier_actor, rfq_id, BidCreate(price=1200, lead_time="2 days"))

    with patch("services.bidding._find_supplier_bid", AsyncMock(return_value=None)):
        with pytest.raises(DuplicateBidError):
            await bidding.submit_bid(session, supplier_actor, rfq_id, BidCreate(price=1100, lead_time="3 days"))

    assert await _bid_count(session) == 1


@pytest.mark.asyncio
async def test_submit_bid_after_selection_rejected(session, contractor_actor, supplier_actor, make_user):
    second = await make_user("second@example.com", role=ROLE_SUPPLIER, categories=["lumber"], service_area=["seattle"])
    rfq = await _sent_rfq(session, contractor_actor)
    bid = await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1200, lead_time="2 days"))
    await rfq_lifecycle.select_bid(session, contractor_actor, rfq.id, bid.id)

    with pytest.raises(InvalidTransitionError):
        await bidding.submit_bid(
            session, ActorContext.from_user(second), rfq.id, BidCreate(price=1000, lead_time="1 day")
        )


def _bid_reads():
    now = datetime.utcnow()
    return [
        BidRead(id=1, rfq_id=1, supplier_id=1, price=1500, lead_time="5 days", created_at=now),
        BidRead(id=2, rfq_id=1, supplier_id=2, price=1200, lead_time="2 days", created_at=now),
        BidRead(id=3, rfq_id=1, supplier_id=3, price=1350, lead_time="10 days", created_at=now),
    ]


def test_sort_price_asc():
    assert [b.price for b in bidding.sort_bids(_bid_reads(), "price_asc")] == [1200, 1350, 1500]


def test_sort_price_desc():
    assert [b.price for b in bidding.sort_bids(_bid_reads(), "price_desc")] == [1500, 1350, 1200]


def test_sort_lead_time_is_lexicographic():
    assert [b.lead_time for b in bidding.sort_bids(_bid_reads(), "lead_time_asc")] == ["10 days", "2 days", "5 days"]


def test_sort_default_keeps_creation_order():
    assert [b.id for b in bidding.sort_bids(_bid_reads())] == [1, 2, 3]


def test_sort_unknown_rejected():
    with pytest.raises(ValidationError):
        bidding.sort_bids(_bid_reads(), "cheapest")


@pytest.mark.asyncio
async def test_list_bids_for_rfq_with_supplier_names(session, contractor_actor, supplier_actor, make_user):
    nameless = await make_user("nameless@example.com", role=ROLE_SUPPLIER, categories=["lumber"], service_area=["seattle"])
    rfq = await _sent_rfq(session, contractor_actor)
    await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1500, lead_time="5 days"))
    await bidding.submit_bid(session, ActorContext.from_user(nameless), rfq.id, BidCreate(price=1200, lead_time="2 days"))

    bids = await bidding.list_bids_for_rfq(session, contractor_actor, rfq.id, "price_asc")

    assert [b.price for b in bids] == [1200, 1500]
    assert [b.supplier_name for b in bids] == ["nameless@example.com", "Cascade Lumber"]


def test_derive_outcome():
    from models import Rfq

    mine = Bid(id=5, rfq_id=1, supplier_id=2, price=1, lead_time="x")
    sent = Rfq(id=1, contractor_id=1, status="sent", raw_text="x")
    won = Rfq(id=1, contractor_id=1, status="selected", raw_text="x", selected_bid_id=5)
    lost = Rfq(id=1, contractor_id=1, status="selected", raw_text="x", selected_bid_id=6)

    assert bidding.derive_outcome(sent, None) == OUTCOME_OPEN
    assert bidding.derive_outcome(sent, mine) == OUTCOME_BID_SUBMITTED
    assert bidding.derive_outcome(won, mine) == OUTCOME_WON
    assert bidding.derive_outcome(lost, mine) == OUTCOME_LOST
    assert bidding.derive_outcome(lost, None) == OUTCOME_LOST


@pytest.mark.asyncio
async def test_supplier_inbox(session, contractor_actor, supplier_actor):
    open_rfq = await _sent_rfq(session, contractor_actor)
    won_rfq = await _sent_rfq(session, contractor_actor)
    await rfq_lifecycle.create_draft(session, contractor_actor, "draft only", _payload())

    bid = await bidding.submit_bid(session, supplier_actor, won_rfq.id, BidCreate(price=1200, lead_time="2 days"))
    await rfq_lifecycle.select_bid(session, contractor_actor, won_rfq.id, bid.id)

    inbox = await bidding.supplier_inbox(session, supplier_actor)

    assert [item.id for item in inbox.items] == [won_rfq.id, open_rfq.id]
    assert [item.outcome for item in inbox.items] == [OUTCOME_WON, OUTCOME_OPEN]
    assert inbox.items[0].my_bid_id == bid.id
    assert inbox.items[0].category_display == "Lumber"
    assert inbox.items[0].city_display == "Seattle"
    assert inbox.categories == ["lumber"]
    assert inbox.service_area == ["seattle"]


@pytest.mark.asyncio
async def test_get_supplier_rfq(session, contractor_actor, supplier_actor):
    rfq = await _sent_rfq(session, contractor_actor)

    detail = await bidding.get_supplier_rfq(session, supplier_actor, rfq.id)
    assert detail.rfq.id == rfq.id
    assert detail.my_bid is None
    assert detail.outcome == OUTCOME_OPEN

    await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1200, lead_time="2 days"))
    detail = await bidding.get_supplier_rfq(session, supplier_actor, rfq.id)
    assert detail.my_bid.price == 1200
    assert detail.my_bid.supplier_name == "Cascade Lumber"
    assert detail.outcome == OUTCOME_BID_SUBMITTED


@pytest.mark.asyncio
async def test_recommend_bid_without_bids(session, contractor_actor, supplier_actor):
    rfq = await _sent_rfq(session, contractor_actor)

    with pytest.raises(ValidationError):
        await bidding.recommend_bid(session, contractor_actor, rfq.id)


@pytest.mark.asyncio
async def test_recommend_bid(session, contractor_actor, supplier_actor, llm_key):
    rfq = await _sent_rfq(session, contractor_actor)
    bid = await bidding.submit_bid(session, supplier_actor, rfq.id, BidCreate(price=1200, lead_time="2 days"))
    reply = {"recommendedBidId": str(bid.id), "reasoning": ["Only bid"], "riskNote": "Single quote"}
    completion = {"choices": [{"message": {"content": json.dumps(reply)}}]}

    with patch("services.llm._post_chat_completion", AsyncMock(return_value=completion)):
        result = await bidding.recommend_bid(session, contractor_actor, rfq.id)

    assert result.success
    assert result.data.recommended_bid_id == str(bid.id)
    assert result.data.risk_note == "Single quote"
