"""
Flat model exports.

Models are organized into domain modules:
- auth.py: users, sessions and the audit log
- rfqs.py: RFQ, recipients and the structured payload schema
- bids.py: bids and the AI recommendation schema
"""

# Auth models
from models.auth import (
    ROLE_CONTRACTOR,
    ROLE_SUPPLIER,
    ROLES,
    ActorContext,
    User,
    AuthSession,
    AuditLog,
    hash_token,
    generate_session_token,
)

# RFQ models
from models.rfqs import (
    RFQ_DRAFT,
    RFQ_SENT,
    RFQ_SELECTED,
    RFQ_STATUSES,
    LineItem,
    DeliveryInfo,
    StructuredRfq,
    Rfq,
    RfqRecipient,
    SendOverrides,
    StructureRequest,
    StructureResponse,
    RfqCreate,
    RfqUpdate,
    RfqRead,
    RfqSummary,
)

# Bid models
from models.bids import (
    BID_SORTS,
    Bid,
    BidCreate,
    BidRead,
    SelectBidRequest,
    AIRecommendation,
    OUTCOME_OPEN,
    OUTCOME_BID_SUBMITTED,
    OUTCOME_WON,
    OUTCOME_LOST,
    InboxItem,
    InboxResponse,
    SupplierRfqDetail,
)

__all__ = [
    "ROLE_CONTRACTOR",
    "ROLE_SUPPLIER",
    "ROLES",
    "ActorContext",
    "User",
    "AuthSession",
    "AuditLog",
    "hash_token",
    "generate_session_token",
    "RFQ_DRAFT",
    "RFQ_SENT",
    "RFQ_SELECTED",
    "RFQ_STATUSES",
    "LineItem",
    "DeliveryInfo",
    "StructuredRfq",
    "Rfq",
    "RfqRecipient",
    "SendOverrides",
    "StructureRequest",
    "StructureResponse",
    "RfqCreate",
    "RfqUpdate",
    "RfqRead",
    "RfqSummary",
    "BID_SORTS",
    "Bid",
    "BidCreate",
    "BidRead",
    "SelectBidRequest",
    "AIRecommendation",
    "OUTCOME_OPEN",
    "OUTCOME_BID_SUBMITTED",
    "OUTCOME_WON",
    "OUTCOME_LOST",
    "InboxItem",
    "InboxResponse",
    "SupplierRfqDetail",
]
