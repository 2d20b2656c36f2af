"""Authentication and profile models: users, sessions and the audit log."""

from typing import Optional, List
from dataclasses import dataclass
from datetime import datetime, timedelta
import hashlib
import secrets
import sqlalchemy as sa
from sqlmodel import Field, SQLModel, Column

from exceptions import NotAuthorizedError


ROLE_CONTRACTOR = "contractor"
ROLE_SUPPLIER = "supplier"
ROLES = (ROLE_CONTRACTOR, ROLE_SUPPLIER)


def hash_token(token: str) -> str:
    """Hash a session token using SHA-256."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_session_token() -> str:
    """Generate a cryptographically secure session token."""
    return secrets.token_urlsafe(32)


class User(SQLModel, table=True):
    """Registered users. Suppliers carry the matching inputs (categories, service areas)."""
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = Field(default=None)
    company: Optional[str] = Field(default=None)

    # Profile set during onboarding
    role: Optional[str] = Field(default=None, index=True)  # "contractor" | "supplier"
    onboarded: bool = Field(default=False)
    # Stored trimmed and lower-cased
    categories: List[str] = Field(default_factory=list, sa_column=Column(sa.JSON, nullable=False, default=list))
    service_area: List[str] = Field(default_factory=list, sa_column=Column(sa.JSON, nullable=False, default=list))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown Supplier"


class AuthSession(SQLModel, table=True):
    """Stores active user sessions with expiration."""
    __tablename__ = "auth_session"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    session_token_hash: str = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(default_factory=lambda: datetime.utcnow() + timedelta(days=7))
    revoked_at: Optional[datetime] = None


class AuditLog(SQLModel, table=True):
    """
    Immutable audit log for lifecycle and profile events.

    This is append-only. No UPDATE or DELETE operations allowed.
    """
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)

    # When
    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)

    # Who
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    # What
    action: str = Field(index=True)  # e.g., "rfq.send", "bid.select", "profile.onboard"
    resource_type: Optional[str] = None  # e.g., "rfq", "bid", "user"
    resource_id: Optional[str] = None  # e.g., "123"

    # Details
    details: Optional[str] = None  # JSON string with action-specific data

    # Outcome
    success: bool = True
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ActorContext:
    """Who is calling a lifecycle or bidding operation. Built per request from the session."""
    user_id: int
    role: Optional[str] = None
    onboarded: bool = False

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        return cls(user_id=user.id, role=user.role, onboarded=user.onboarded)

    def require_role(self, role: str) -> None:
        if self.role != role:
            raise NotAuthorizedError(
                f"This action requires the {role} role",
                detail={"role": self.role},
            )
