"""
Audit logging utilities.

Usage:
    await audit_log(
        session=db_session,
        action="rfq.send",
        user_id=actor.user_id,
        resource_type="rfq",
        resource_id=str(rfq.id),
        details={"recipients": len(rfq.matched_supplier_ids)},
        request=request,  # Optional FastAPI Request for IP/UA
    )
"""

from typing import Optional, Dict, Any
from datetime import datetime
import json
import logging

from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import Request

from models import AuditLog

logger = logging.getLogger(__name__)


async def audit_log(
    session: AsyncSession,
    action: str,
    user_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    request: Optional[Request] = None,
):
    """
    Create an audit log entry.

    Called after the audited change has committed. This should never raise:
    failures are logged but not propagated.
    """
    try:
        ip_address = None
        user_agent = None

        if request is not None:
            ip_address = request.client.host if request.client else None
            user_agent = request.headers.get("user-agent", "")[:500]

        safe_details = json.dumps(redact_sensitive(details), default=str) if details else None

        session.add(
            AuditLog(
                timestamp=datetime.utcnow(),
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=safe_details,
                success=success,
                error_message=error_message,
            )
        )
        await session.commit()

    except Exception as e:
        # Never let audit logging break the main flow
        logger.error(f"Failed to write audit log for {action}: {e}")


def redact_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive fields from audit details."""
    sensitive_keys = {'password', 'token', 'secret', 'api_key', 'session_token'}

    def _redact(obj):
        if isinstance(obj, dict):
            return {
                k: '[REDACTED]' if str(k).lower() in sensitive_keys else _redact(v)
                for k, v in obj.items()
            }
        if isinstance(obj, list):
            return [_redact(item) for item in obj]
        return obj

    return _redact(data)
