"""Onboarding route - role choice and the supplier matching profile."""
from fastapi import APIRouter, Depends, Request
from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional, Union
from sqlmodel.ext.asyncio.session import AsyncSession

from audit import audit_log
from database import get_session
from dependencies import get_current_user
from exceptions import ValidationError
from models import ROLE_SUPPLIER, ROLES, User
from utils.text import normalize_list, split_csv

router = APIRouter(tags=["onboarding"])


class OnboardingRequest(BaseModel):
    role: str
    name: Optional[str] = None
    company: Optional[str] = None
    # Single category as picked in the form, or a full list
    category: Optional[str] = None
    categories: Optional[List[str]] = None
    # "Austin, 78701, Dallas" or an already split list
    service_area: Optional[Union[str, List[str]]] = None


class ProfileResponse(BaseModel):
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    onboarded: bool
    categories: List[str] = []
    service_area: List[str] = []


@router.post("/onboarding", response_model=ProfileResponse)
async def onboard(
    body: OnboardingRequest,
    request: Request,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Set the caller's role. Suppliers must name at least one category and one
    service area; both are stored trimmed and lower-cased for matching.
    """
    role = (body.role or "").strip().lower()
    if role not in ROLES:
        raise ValidationError("Role must be contractor or supplier", detail={"role": body.role})

    if role == ROLE_SUPPLIER:
        categories = normalize_list([body.category, *(body.categories or [])])
        service_area = split_csv(body.service_area)
        if not categories or not service_area:
            raise ValidationError(
                "Please fill out both Category and Service Area.",
                detail={"categories": categories, "service_area": service_area},
            )
        user.categories = categories
        user.service_area = service_area

    user.role = role
    user.onboarded = True
    if body.name:
        user.name = body.name.strip()
    if body.company:
        user.company = body.company.strip()
    user.updated_at = datetime.utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    await audit_log(
        session=session,
        action="profile.onboard",
        user_id=user.id,
        resource_type="user",
        resource_id=str(user.id),
        details={"role": role, "categories": user.categories, "service_area": user.service_area},
        request=request,
    )

    return ProfileResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        company=user.company,
        role=user.role,
        onboarded=user.onboarded,
        categories=list(user.categories or []),
        service_area=list(user.service_area or []),
    )
