"""Bid models: supplier quotes against an RFQ and the AI recommendation schema."""

from typing import Optional, List
from datetime import datetime
import pydantic
from sqlmodel import Field, SQLModel, UniqueConstraint
from pydantic import BaseModel, ConfigDict, field_validator

from models.rfqs import RfqRead


BID_SORTS = ("price_asc", "price_desc", "lead_time_asc")


class Bid(SQLModel, table=True):
    """A supplier's price/terms response to one RFQ. At most one per (rfq, supplier)."""
    __tablename__ = "bid"
    __table_args__ = (
        UniqueConstraint("rfq_id", "supplier_id", name="uq_bid_rfq_supplier"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    rfq_id: int = Field(foreign_key="rfq.id", index=True)
    supplier_id: int = Field(foreign_key="user.id", index=True)

    price: float
    lead_time: str
    delivery_window: Optional[str] = None
    notes: Optional[str] = None

    # Flips to True only through bid selection
    selected: bool = False

    created_at: datetime = Field(default_factory=datetime.utcnow)


class BidCreate(BaseModel):
    price: float
    lead_time: str
    delivery_window: Optional[str] = None
    notes: Optional[str] = None


class BidRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rfq_id: int
    supplier_id: int
    supplier_name: Optional[str] = None
    price: float
    lead_time: str
    delivery_window: Optional[str] = None
    notes: Optional[str] = None
    selected: bool = False
    created_at: datetime


class SelectBidRequest(BaseModel):
    bid_id: int


class AIRecommendation(BaseModel):
    """Ranking model output. Ephemeral: returned to the caller, never persisted."""
    model_config = ConfigDict(populate_by_name=True)

    recommended_bid_id: str = pydantic.Field(alias="recommendedBidId")
    reasoning: List[str] = pydantic.Field(default_factory=list)
    risk_note: Optional[str] = pydantic.Field(default=None, alias="riskNote")

    @field_validator("recommended_bid_id", mode="before")
    @classmethod
    def _id_as_string(cls, v):
        # Models answer with either "12" or 12
        if v is None:
            return v
        return str(v).strip()

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


# ---------------------------------------------------------------------------
# Supplier views
# ---------------------------------------------------------------------------

OUTCOME_OPEN = "open"
OUTCOME_BID_SUBMITTED = "bid_submitted"
OUTCOME_WON = "won"
OUTCOME_LOST = "lost"


class InboxItem(RfqRead):
    """An RFQ as seen from a recipient supplier's inbox."""
    category_display: str = ""
    city_display: str = ""
    my_bid_id: Optional[int] = None
    outcome: str = OUTCOME_OPEN


class InboxResponse(BaseModel):
    items: List[InboxItem] = []
    categories: List[str] = []
    service_area: List[str] = []


class SupplierRfqDetail(BaseModel):
    rfq: RfqRead
    my_bid: Optional[BidRead] = None
    outcome: str = OUTCOME_OPEN
