"""
Supplier matching: which suppliers receive a sent RFQ.

A supplier matches when its category set contains the requested category and
its service-area set contains the delivery city. How an empty service area is
treated, and whether the category test is also pushed into the SQL query, is
decided by one MatchPolicy shared by every send path.
"""

import json
import logging
import os
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import Text, cast, func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from models import ROLE_SUPPLIER, User
from utils.text import normalize_key, normalize_list

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class MatchPolicy:
    # Supplier with no declared area serves every city
    empty_area_means_global: bool = True
    # Narrow the supplier query by category before the in-memory scan
    prefilter_category_in_query: bool = True

    @classmethod
    def from_env(cls) -> "MatchPolicy":
        return cls(
            empty_area_means_global=_env_flag("MATCH_EMPTY_AREA_MEANS_GLOBAL", True),
            prefilter_category_in_query=_env_flag("MATCH_PREFILTER_CATEGORY", True),
        )


@dataclass
class SupplierProfile:
    """Read-only matching view of a supplier user."""
    id: int
    categories: List[str] = field(default_factory=list)
    service_area: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.categories = normalize_list(self.categories)
        self.service_area = normalize_list(self.service_area)

    @classmethod
    def from_user(cls, user: User) -> "SupplierProfile":
        return cls(id=user.id, categories=user.categories or [], service_area=user.service_area or [])


def supplier_matches(profile: SupplierProfile, category: str, city: str, policy: MatchPolicy) -> bool:
    category = normalize_key(category)
    city = normalize_key(city)
    if not category or category not in profile.categories:
        return False
    if not profile.service_area:
        return policy.empty_area_means_global
    return city in profile.service_area


def match_suppliers(
    category: str,
    city: str,
    suppliers: Iterable[SupplierProfile],
    policy: Optional[MatchPolicy] = None,
) -> Set[int]:
    """
    Return the ids of the suppliers eligible to receive an RFQ.

    Pure: nothing is read from or written to the database here. An empty
    result means "no recipients" and the caller must not send.
    """
    policy = policy or MatchPolicy()
    return {s.id for s in suppliers if supplier_matches(s, category, city, policy)}


class SupplierIndex:
    """
    Indexed lookup answering the same question as match_suppliers().

    Builds category -> ids and area -> ids maps once, so each match is a set
    intersection instead of a scan over every profile.
    """

    def __init__(self, suppliers: Iterable[SupplierProfile], policy: Optional[MatchPolicy] = None):
        self.policy = policy or MatchPolicy()
        self.by_category: Dict[str, Set[int]] = defaultdict(set)
        self.by_area: Dict[str, Set[int]] = defaultdict(set)
        self.no_area: Set[int] = set()

        for supplier in suppliers:
            for category in supplier.categories:
                self.by_category[category].add(supplier.id)
            if supplier.service_area:
                for area in supplier.service_area:
                    self.by_area[area].add(supplier.id)
            else:
                self.no_area.add(supplier.id)

    def match(self, category: str, city: str) -> Set[int]:
        in_category = self.by_category.get(normalize_key(category), set())
        if not in_category:
            return set()
        eligible = set(self.by_area.get(normalize_key(city), set()))
        if self.policy.empty_area_means_global:
            eligible |= self.no_area
        return in_category & eligible


async def load_supplier_profiles(
    session: AsyncSession,
    category: str,
    policy: Optional[MatchPolicy] = None,
) -> List[SupplierProfile]:
    """
    Load supplier profiles for matching.

    With prefilter_category_in_query the JSON categories column is searched for
    the JSON-encoded category server-side; the in-memory predicate still decides.
    """
    policy = policy or MatchPolicy()
    query = select(User).where(User.role == ROLE_SUPPLIER)

    category = normalize_key(category)
    if policy.prefilter_category_in_query and category:
        stored = func.lower(cast(User.categories, Text), type_=Text)
        # Serialized forms of the category: raw UTF-8, and \u-escaped for rows
        # written by an escaping serializer
        needles = {json.dumps(category, ensure_ascii=False), json.dumps(category)}
        query = query.where(or_(*(stored.contains(n, autoescape=True) for n in sorted(needles))))

    result = await session.exec(query)
    profiles = [SupplierProfile.from_user(user) for user in result.all()]
    logger.debug(
        "Loaded supplier profiles",
        extra={"category": category, "count": len(profiles), "prefiltered": policy.prefilter_category_in_query},
    )
    return profiles
