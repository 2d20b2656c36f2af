# Services package
from .llm import LLMResult, structure_rfq, rank_bids
from .matching import MatchPolicy, SupplierProfile, SupplierIndex, match_suppliers

__all__ = [
    "LLMResult",
    "structure_rfq",
    "rank_bids",
    "MatchPolicy",
    "SupplierProfile",
    "SupplierIndex",
    "match_suppliers",
]
