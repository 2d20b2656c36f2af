"""
Readiness checks.

The database is the only hard dependency. The hosted LLM is reported but
never blocks readiness: structuring and ranking degrade to typed failures
without it.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlmodel.ext.asyncio.session import AsyncSession

from .logging import get_logger

logger = get_logger(__name__)

OK = "ok"
DEGRADED = "degraded"
ERROR = "error"


@dataclass
class CheckResult:
    status: str
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status, "details": self.details}
        if self.error:
            out["error"] = self.error
        return out


async def check_database(session: AsyncSession, timeout: float = 5.0) -> CheckResult:
    started = time.time()
    try:
        await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=timeout)
    except asyncio.TimeoutError:
        return CheckResult(ERROR, error=f"Database query timeout after {timeout}s")
    except Exception as e:
        logger.error("Database health check failed", exc_info=True)
        return CheckResult(ERROR, error=str(e)[:200])
    return CheckResult(OK, details={"latency_ms": round((time.time() - started) * 1000, 2)})


def check_llm_config() -> CheckResult:
    """Configuration only; the provider is not called."""
    from services.llm import LLM_BASE_URL, LLM_MODEL, get_llm_api_key

    if not get_llm_api_key():
        return CheckResult(DEGRADED, details={"message": "LLM_API_KEY / GROQ_API_KEY not set"})
    return CheckResult(OK, details={"base_url": LLM_BASE_URL, "model": LLM_MODEL})


async def run_health_checks(session: AsyncSession) -> Dict[str, Any]:
    checks = {
        "database": await check_database(session),
        "llm_api": check_llm_config(),
    }

    statuses = {check.status for check in checks.values()}
    if ERROR in statuses:
        overall = "unhealthy"
    elif DEGRADED in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "ready": checks["database"].status == OK,
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {name: check.to_dict() for name, check in checks.items()},
    }
