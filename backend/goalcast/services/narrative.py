"""Gemini client for the goal-forecast narrative.

The narrative service is unreliable by contract: every call is bounded by a
timeout, retried once after a short backoff, and parsed field by field so a
partial or malformed answer still yields whatever lists it does contain.
"""

import asyncio
import json
import logging
import os
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .. import config
from ..exceptions import ExternalServiceDegraded
from ..schemas.forecasting import GoalSnapshot, Narrative, PredictionFactors

logger = logging.getLogger(__name__)


# Rate limiting state (in-memory - resets on server restart)
_rate_limit_state = {
    "requests_today": 0,
    "last_reset": date.today(),
    "requests_per_minute": [],
}

DAILY_LIMIT = 1500
PER_MINUTE_LIMIT = 15

ERROR_PREFIXES = ("API error:", "Error calling LLM:", "Rate limit exceeded:")

SYSTEM_INSTRUCTION = """You are an expert financial analyst. Given contribution patterns, \
income/expense trends, competing goals and budget utilization, explain the outlook \
for a savings goal.

Provide:
1. Insights about the current progress
2. Potential risk factors
3. Opportunities to save faster

Be realistic but motivating. Respond with a JSON object only."""

NARRATIVE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "insights": {"type": "ARRAY", "items": {"type": "STRING"}},
        "risk_factors": {"type": "ARRAY", "items": {"type": "STRING"}},
        "opportunities": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
}

# Keys the model has been seen to use for each field
_FIELD_ALIASES = {
    "insights": ("insights", "ai_insights", "insights_es"),
    "risk_factors": ("risk_factors", "risks", "factores_riesgo"),
    "opportunities": ("opportunities", "oportunidades"),
}


def _check_rate_limit() -> Tuple[bool, Dict[str, Any]]:
    """Check if we're within rate limits. Returns (allowed, status_info)."""
    today = date.today()

    # Reset daily counter if new day
    if _rate_limit_state["last_reset"] != today:
        _rate_limit_state["requests_today"] = 0
        _rate_limit_state["last_reset"] = today

    # Clean up old minute timestamps
    now = datetime.now()
    _rate_limit_state["requests_per_minute"] = [
        ts for ts in _rate_limit_state["requests_per_minute"]
        if (now - ts).total_seconds() < 60
    ]

    daily_remaining = DAILY_LIMIT - _rate_limit_state["requests_today"]
    minute_remaining = PER_MINUTE_LIMIT - len(_rate_limit_state["requests_per_minute"])

    status = {
        "daily_remaining": daily_remaining,
        "minute_remaining": minute_remaining,
    }

    if daily_remaining <= 0:
        return False, {**status, "error": "Daily limit reached. Resets at midnight."}
    if minute_remaining <= 0:
        return False, {**status, "error": "Rate limit reached. Wait a minute."}

    return True, status


def _record_llm_request():
    """Record an LLM request for rate limiting."""
    _rate_limit_state["requests_today"] += 1
    _rate_limit_state["requests_per_minute"].append(datetime.now())


async def call_gemini_api(
    prompt: str,
    system_instruction: str = "",
    response_schema: Optional[Dict[str, Any]] = None,
    temperature: float = 0.3,
    timeout: float = config.NARRATIVE_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """Call Gemini and return the response text.

    Returns None when the service is not configured or answered with no
    content, and an error-prefixed string on HTTP or transport failure.
    """
    api_key = os.getenv("GEMINI_API_KEY") or config.GEMINI_API_KEY
    if not api_key:
        logger.warning("[LLM] GEMINI_API_KEY not found in environment")
        return None

    allowed, status = _check_rate_limit()
    if not allowed:
        logger.warning(f"[LLM] Rate limit exceeded: {status}")
        return f"Rate limit exceeded: {status.get('error', 'Try again later.')}"

    url = f"https://generativelanguage.googleapis.com/v1beta/models/{config.GEMINI_MODEL}:generateContent?key={api_key}"

    generation_config = {
        "temperature": temperature,
        "maxOutputTokens": 1500,
    }
    if response_schema:
        generation_config["responseMimeType"] = "application/json"
        generation_config["responseSchema"] = response_schema

    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }
    if system_instruction:
        payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()

            _record_llm_request()

            candidates = data.get("candidates", []) if isinstance(data, dict) else []
            if candidates:
                parts = candidates[0].get("content", {}).get("parts", [])
                if parts:
                    text = parts[0].get("text", "")
                    return text if isinstance(text, str) else None
            return None
    except httpx.TimeoutException:
        logger.error(f"[LLM] Timed out after {timeout}s")
        return f"Error calling LLM: timeout after {timeout}s"
    except httpx.HTTPStatusError as e:
        logger.error(f"[LLM] HTTP error: {e.response.status_code} - {e.response.text[:200]}")
        return f"API error: {e.response.status_code}"
    except Exception as e:
        logger.exception(f"[LLM] Exception during API call: {type(e).__name__}: {e}")
        return f"Error calling LLM: {e}"


def is_valid_llm_response(response: Optional[str]) -> bool:
    """Check if LLM response is valid and usable."""
    if not isinstance(response, str) or not response.strip():
        return False
    return not response.startswith(ERROR_PREFIXES)


def build_goal_prompt(goal: GoalSnapshot, factors: PredictionFactors) -> str:
    """Structured prompt: goal identity plus the five computed signals."""
    remaining = goal.target_amount - goal.current_amount
    signals = json.dumps(factors.model_dump(mode="json"), indent=2)
    return f"""Predict the completion of this savings goal considering ALL contextual factors.

Goal:
- Name: {goal.name}
- Target amount: {goal.target_amount:.2f}
- Current amount: {goal.current_amount:.2f}
- Remaining: {remaining:.2f}
- Target date: {goal.target_date.isoformat() if goal.target_date else 'not set'}
- Priority: {goal.priority if goal.priority is not None else 'not set'} (1=highest, 5=lowest)

Computed signals (contribution stats over 12 months, financial trends and history over 6 months,
competing goals, budget utilization):
{signals}

Consider the other active goals, the real saving capacity after budgets and the user's
historical consistency.

Return JSON with keys: predicted_completion_date, confidence_score, recommended_monthly_amount,
minimum_monthly_amount, insights (list of strings), risk_factors (list of strings),
opportunities (list of strings)."""


def _strip_code_fences(content: str) -> str:
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if "```" in content:
        return content.split("```")[1].split("```")[0].strip()
    return content.strip()


def _as_text_list(value: Any) -> List[str]:
    """Coerce one narrative field into a list of non-empty strings."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []

    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("description") or item.get("text") or item.get("title") or ""
        if isinstance(item, (str, int, float)) and str(item).strip():
            items.append(str(item).strip())
    return items


def parse_narrative(content: Optional[str]) -> Narrative:
    """Best-effort parse of a narrative answer. Unknown shapes give empty fields."""
    if not content:
        return Narrative()

    text = _strip_code_fences(content)
    data: Any = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if match:
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError:
                data = None

    if isinstance(data, dict):
        fields = {}
        for field, aliases in _FIELD_ALIASES.items():
            value = next((data[k] for k in aliases if k in data), None)
            fields[field] = _as_text_list(value)
        return Narrative(**fields)

    # Loose text: keep bullet lines as insights
    bullets = [
        re.sub(r"^[\-\*•]\s*", "", line.strip())
        for line in text.splitlines()
        if re.match(r"^\s*[\-\*•]\s+\S", line)
    ]
    return Narrative(insights=bullets)


async def generate_goal_narrative(
    goal: GoalSnapshot,
    factors: PredictionFactors,
    timeout: float = config.NARRATIVE_TIMEOUT_SECONDS,
    max_retries: int = config.NARRATIVE_MAX_RETRIES,
    backoff: float = config.NARRATIVE_RETRY_BACKOFF_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Narrative:
    """Ask the narrative service about a goal.

    Raises ExternalServiceDegraded once the retries are used up.
    """
    prompt = build_goal_prompt(goal, factors)

    last_response: Optional[str] = None
    for attempt in range(max_retries + 1):
        last_response = await call_gemini_api(
            prompt,
            system_instruction=SYSTEM_INSTRUCTION,
            response_schema=NARRATIVE_SCHEMA,
            timeout=timeout,
            transport=transport,
        )
        if last_response is None and not (os.getenv("GEMINI_API_KEY") or config.GEMINI_API_KEY):
            raise ExternalServiceDegraded("Narrative service is not configured")
        if is_valid_llm_response(last_response):
            return parse_narrative(last_response)
        if attempt < max_retries:
            logger.warning(
                f"[LLM] Narrative attempt {attempt + 1}/{max_retries + 1} failed, retrying in {backoff}s"
            )
            await asyncio.sleep(backoff)

    raise ExternalServiceDegraded(f"Narrative service unavailable: {last_response or 'empty response'}")
