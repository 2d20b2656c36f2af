"""
LLM service: RFQ structuring and bid ranking against a hosted chat-completion model.

Uses httpx to call an OpenAI-compatible chat completions endpoint (Groq by
default). Both adapters return an LLMResult instead of raising: upstream and
parse failures come back as typed failures the caller can surface or degrade.
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

import httpx
from pydantic import ValidationError as SchemaError

from exceptions import (
    ERROR_TYPES,
    Bid2Error,
    UnparseableResponseError,
    UpstreamUnavailableError,
    ValidationError,
)
from models import AIRecommendation, BidRead, StructuredRfq
from observability.metrics import llm_api_duration_seconds, llm_api_errors_total
from utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "groq")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1").rstrip("/")
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
LLM_MAX_ATTEMPTS = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
LLM_RETRY_DELAY_SECONDS = float(os.getenv("LLM_RETRY_DELAY_SECONDS", "1.0"))
LLM_MAX_TOKENS = 1024

STRUCTURE_TEMPERATURE = 0.2
RANK_TEMPERATURE = 0.1

T = TypeVar("T")


def get_llm_api_key() -> str:
    return os.getenv("LLM_API_KEY") or os.getenv("GROQ_API_KEY") or ""


# =============================================================================
# PROMPTS
# =============================================================================

STRUCTURE_SYSTEM_PROMPT = """You extract structured data from a contractor's free-text Request for Quote (RFQ).
Return ONLY a raw JSON object with exactly this schema:
{
  "category": "String (e.g. Lumber, Plumbing, Electrical, Windows, Concrete, HVAC, Roofing, General Construction. Infer if not explicit.)",
  "items": [
    { "name": "String", "quantity": "String or Number", "unit": "String" }
  ],
  "delivery": {
    "city": "String",
    "zip": "String"
  },
  "neededBy": "String (Date or 'ASAP')",
  "clarifyingQuestions": ["Questions about missing critical information, if any"]
}
No markdown, no code fences, no prose outside the JSON."""

RANK_SYSTEM_PROMPT = """You are a procurement assistant. Compare the supplier bids against the contractor's RFQ requirements and recommend exactly ONE winning bid.
Return ONLY a raw JSON object with exactly this schema:
{
  "recommendedBidId": "String (the id of one of the submitted bids, copied exactly)",
  "reasoning": [
    "String (short bullet explaining the choice)",
    "String (short bullet explaining the choice)"
  ],
  "riskNote": "String (optional, very brief: longer lead times, missing delivery details, etc. Omit if none.)"
}
No markdown, no code fences, no prose outside the JSON."""


# =============================================================================
# RESULT TYPE
# =============================================================================

@dataclass
class LLMResult(Generic[T]):
    """Outcome of an adapter call. Exactly one of data / error is set."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "LLMResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc: Bid2Error) -> "LLMResult[T]":
        return cls(success=False, error=exc.message, error_type=exc.error_type)

    def raise_for_error(self) -> T:
        """Return data, or raise the typed exception this failure stands for."""
        if self.success:
            return self.data
        exc_class = ERROR_TYPES.get(self.error_type or "", UpstreamUnavailableError)
        raise exc_class(self.error or "LLM request failed")


# =============================================================================
# TRANSPORT
# =============================================================================

def _is_retryable(exc: BaseException) -> bool:
    """Retry timeouts, transport errors, 429 and 5xx. Other 4xx are final."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


@retry_with_backoff(
    max_attempts=LLM_MAX_ATTEMPTS,
    initial_delay=LLM_RETRY_DELAY_SECONDS,
    exceptions=(httpx.HTTPError,),
    should_retry=_is_retryable,
)
async def _post_chat_completion(payload: Dict[str, Any], api_key: str) -> Dict[str, Any]:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=LLM_TIMEOUT_SECONDS) as client:
        resp = await client.post(f"{LLM_BASE_URL}/chat/completions", headers=headers, json=payload)
        resp.raise_for_status()
        return resp.json()


async def call_llm(system_prompt: str, user_content: str, temperature: float) -> str:
    """
    Send one system + user exchange and return the raw completion text.

    Raises:
        UpstreamUnavailableError: missing key, transport failure, or error status
            after retries, or a reply without a message object.
        UnparseableResponseError: message content that is not text.
    """
    api_key = get_llm_api_key()
    if not api_key:
        raise UpstreamUnavailableError("No LLM API key configured (LLM_API_KEY or GROQ_API_KEY)")

    payload = {
        "model": LLM_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        "temperature": temperature,
        "max_tokens": LLM_MAX_TOKENS,
    }

    start = time.time()
    try:
        data = await _post_chat_completion(payload, api_key)
    except httpx.HTTPError as e:
        raise UpstreamUnavailableError(f"LLM request failed: {type(e).__name__}") from e
    except ValueError as e:
        # Non-JSON body from the provider
        raise UpstreamUnavailableError("LLM provider returned a malformed response") from e
    finally:
        llm_api_duration_seconds.labels(provider=LLM_PROVIDER, model=LLM_MODEL).observe(time.time() - start)

    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise UpstreamUnavailableError("LLM returned no choices")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise UpstreamUnavailableError("LLM returned a malformed message")
    content = message.get("content")
    if content is None:
        return ""
    if not isinstance(content, str):
        raise UnparseableResponseError("LLM returned non-text content.")
    return content


# =============================================================================
# PARSING
# =============================================================================

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: Optional[str]) -> str:
    """Remove ```json / ``` markers the model may wrap around its JSON."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_llm_json(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse a model reply into a JSON object.

    Tries the fence-stripped text first; on failure, re-parses the slice
    between the first "{" and the last "}".

    Raises:
        UnparseableResponseError: neither attempt yields a JSON object.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Standard JSON parse failed, attempting brace extraction")
        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        if first_brace == -1 or last_brace <= first_brace:
            raise UnparseableResponseError("Invalid output format returned by AI.")
        try:
            data = json.loads(cleaned[first_brace : last_brace + 1])
        except json.JSONDecodeError as e:
            raise UnparseableResponseError("Could not parse JSON even after brace extraction.") from e

    if not isinstance(data, dict):
        raise UnparseableResponseError("AI response is not a JSON object.")
    return data


def _record_failure(operation: str, exc: Bid2Error) -> None:
    llm_api_errors_total.labels(provider=LLM_PROVIDER, error_type=exc.error_type).inc()
    logger.error(
        f"LLM {operation} failed: {exc.message}",
        extra={"operation": operation, "error_type": exc.error_type},
    )


# =============================================================================
# ADAPTERS
# =============================================================================

async def structure_rfq(raw_text: str) -> LLMResult[StructuredRfq]:
    """
    Turn a contractor's free text into the fixed RFQ schema.

    Category and delivery city come back trimmed and lower-cased so they can
    be matched exactly. Empty input must be rejected by the caller.
    """
    try:
        reply = await call_llm(STRUCTURE_SYSTEM_PROMPT, raw_text, STRUCTURE_TEMPERATURE)
        data = parse_llm_json(reply)
        try:
            structured = StructuredRfq.model_validate(data)
        except SchemaError as e:
            raise UnparseableResponseError("AI response does not match the RFQ schema.") from e
    except (UpstreamUnavailableError, UnparseableResponseError) as e:
        _record_failure("structure", e)
        return LLMResult.failure(e)

    return LLMResult.ok(structured.normalized())


def _bid_view(bid: BidRead) -> Dict[str, Any]:
    return {
        "id": str(bid.id),
        "supplierName": bid.supplier_name or "Unknown Supplier",
        "price": bid.price,
        "leadTime": bid.lead_time,
        "delivery": bid.delivery_window,
        "notes": bid.notes,
    }


async def rank_bids(structured: StructuredRfq, bids: Sequence[BidRead]) -> LLMResult[AIRecommendation]:
    """
    Ask the model to pick one winning bid, with reasons and an optional risk note.

    The recommended id is checked against the submitted bids; an id the model
    invented is reported as UnparseableResponse.
    """
    if not bids:
        return LLMResult.failure(ValidationError("No bids provided for analysis."))

    bid_views: List[Dict[str, Any]] = [_bid_view(b) for b in bids]
    user_content = (
        "RFQ Requirements:\n"
        f"{json.dumps(structured.model_dump(by_alias=True), indent=2)}\n\n"
        "Submitted Bids:\n"
        f"{json.dumps(bid_views, indent=2)}"
    )

    try:
        reply = await call_llm(RANK_SYSTEM_PROMPT, user_content, RANK_TEMPERATURE)
        data = parse_llm_json(reply)
        try:
            recommendation = AIRecommendation.model_validate(data)
        except SchemaError as e:
            raise UnparseableResponseError("AI response does not match the recommendation schema.") from e

        known_ids = {view["id"] for view in bid_views}
        if recommendation.recommended_bid_id not in known_ids:
            raise UnparseableResponseError(
                "AI recommended a bid that was not submitted.",
                detail={"recommended_bid_id": recommendation.recommended_bid_id},
            )
    except (UpstreamUnavailableError, UnparseableResponseError) as e:
        _record_failure("rank", e)
        return LLMResult.failure(e)

    return LLMResult.ok(recommendation)
