"""RFQ models: the request table, its recipients, and the structured payload schema."""

from typing import Optional, List, Dict, Any, Union
from datetime import datetime
import sqlalchemy as sa
from sqlmodel import Field, SQLModel, Column
import pydantic
from pydantic import BaseModel, ConfigDict, field_validator

from utils.text import normalize_key


RFQ_DRAFT = "draft"
RFQ_SENT = "sent"
RFQ_SELECTED = "selected"
RFQ_STATUSES = (RFQ_DRAFT, RFQ_SENT, RFQ_SELECTED)


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    quantity: Optional[Union[int, float, str]] = None
    unit: str = ""

    @field_validator("name", "unit", mode="before")
    @classmethod
    def _blank_strings(cls, v: Any) -> str:
        return "" if v is None else str(v)


class DeliveryInfo(BaseModel):
    city: str = ""
    zip: str = ""

    @field_validator("city", "zip", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)


class StructuredRfq(BaseModel):
    """
    Fixed RFQ schema produced by the structuring model and edited by the contractor.

    Accepts the model's camelCase keys (neededBy, clarifyingQuestions) as well
    as snake_case; always dumps snake_case.
    """
    model_config = ConfigDict(populate_by_name=True)

    category: str = ""
    items: List[LineItem] = pydantic.Field(default_factory=list)
    delivery: DeliveryInfo = pydantic.Field(default_factory=DeliveryInfo)
    needed_by: str = pydantic.Field(default="", alias="neededBy")
    clarifying_questions: List[str] = pydantic.Field(default_factory=list, alias="clarifyingQuestions")

    @field_validator("category", "needed_by", mode="before")
    @classmethod
    def _blank_strings(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("items", "clarifying_questions", mode="before")
    @classmethod
    def _blank_lists(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("delivery", mode="before")
    @classmethod
    def _blank_delivery(cls, v: Any) -> Any:
        return {} if v is None else v

    def normalized(self) -> "StructuredRfq":
        """Copy with category and delivery city trimmed and lower-cased."""
        return self.model_copy(
            update={
                "category": normalize_key(self.category),
                "delivery": self.delivery.model_copy(update={"city": normalize_key(self.delivery.city)}),
            }
        )

    def missing_send_fields(self) -> List[str]:
        missing = []
        if not self.category.strip():
            missing.append("category")
        if not self.delivery.city.strip():
            missing.append("delivery.city")
        if not self.needed_by.strip():
            missing.append("needed_by")
        return missing

    @classmethod
    def empty(cls) -> "StructuredRfq":
        """Blank shell offered for manual entry when structuring fails."""
        return cls()


class Rfq(SQLModel, table=True):
    """A contractor's request for quote. Lifecycle: draft -> sent -> selected."""
    __tablename__ = "rfq"

    id: Optional[int] = Field(default=None, primary_key=True)
    contractor_id: int = Field(foreign_key="user.id", index=True)
    status: str = Field(default=RFQ_DRAFT, index=True)

    raw_text: str
    structured_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(sa.JSON, nullable=False, default=dict))

    # Snapshot taken at send time; empty while draft
    matched_supplier_ids: List[int] = Field(default_factory=list, sa_column=Column(sa.JSON, nullable=False, default=list))
    # Set only once the RFQ is selected
    selected_bid_id: Optional[int] = None

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    selected_at: Optional[datetime] = None

    @property
    def structured(self) -> StructuredRfq:
        return StructuredRfq.model_validate(self.structured_data or {})


class RfqRecipient(SQLModel, table=True):
    """One row per matched supplier of a sent RFQ; backs the supplier inbox query."""
    __tablename__ = "rfq_recipient"

    rfq_id: int = Field(foreign_key="rfq.id", primary_key=True)
    supplier_id: int = Field(foreign_key="user.id", primary_key=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ---------------------------------------------------------------------------
# API schemas
# ---------------------------------------------------------------------------

class SendOverrides(BaseModel):
    """Manually entered values that backfill empty structured fields at send time."""
    category: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None
    needed_by: Optional[str] = None


class StructureRequest(BaseModel):
    raw_text: str


class StructureResponse(BaseModel):
    success: bool
    data: StructuredRfq
    error: Optional[str] = None
    error_type: Optional[str] = None


class RfqCreate(BaseModel):
    raw_text: str
    structured_data: Optional[StructuredRfq] = None
    send_now: bool = False
    overrides: Optional[SendOverrides] = None


class RfqUpdate(BaseModel):
    structured_data: StructuredRfq


class RfqRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contractor_id: int
    status: str
    raw_text: str
    structured_data: StructuredRfq
    matched_supplier_ids: List[int] = []
    selected_bid_id: Optional[int] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
    selected_at: Optional[datetime] = None

    @classmethod
    def from_rfq(cls, rfq: Rfq) -> "RfqRead":
        return cls(
            id=rfq.id,
            contractor_id=rfq.contractor_id,
            status=rfq.status,
            raw_text=rfq.raw_text,
            structured_data=rfq.structured,
            matched_supplier_ids=list(rfq.matched_supplier_ids or []),
            selected_bid_id=rfq.selected_bid_id,
            created_at=rfq.created_at,
            sent_at=rfq.sent_at,
            selected_at=rfq.selected_at,
        )


class RfqSummary(RfqRead):
    bid_count: int = 0
