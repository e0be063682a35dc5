"""Pattern discovery: a stateless call to a text-generation endpoint."""

import json
import logging
from datetime import datetime, tzinfo

import httpx

from ..config import DISCOVERY_API_URL
from ..models.entry import Entry

logger = logging.getLogger(__name__)

MIN_ENTRIES = 3
INSUFFICIENT_DATA_MESSAGE = (
    "Insufficient data for pattern discovery. Continue logging sessions."
)
ERROR_MESSAGE = "Error initializing discovery engine. Check environment configuration."
EMPTY_MESSAGE = "Discovery engine returned no insights."


def build_discovery_prompt(entries: list[Entry], tz: tzinfo | None = None) -> str:
    """Render the log into the analysis prompt."""
    logs = [
        {
            "date": datetime.fromtimestamp(e.timestamp / 1000, tz).strftime("%a %b %d %Y"),
            "id": e.identity.label,
            "energy": e.energy,
            "tags": list(e.tags),
            "notes": e.notes,
        }
        for e in sorted(entries, key=lambda e: e.sort_key)
    ]
    return f"""Analyze these training logs from Axiom (a high-performance training log).
The user uses identity states: Overdrive, Normal, Maintenance, Survival and Rest.

Logs:
{json.dumps(logs, indent=2)}

Task:
1. Identify correlations between tags (like 'stress' or 'exams') and identity states.
2. Look for "identity decay" or successful "survival mode" bridging.
3. Provide 3 specific, non-motivational, technical insights based ONLY on the data.
Keep it concise, professional, and clinical.
"""


class DiscoveryService:
    """Sends the entry log to a Gemini-style generateContent endpoint."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-3-pro-preview",
        base_url: str = DISCOVERY_API_URL,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def analyze(self, entries: list[Entry], tz: tzinfo | None = None) -> str:
        """Return the generated analysis, or a fixed message on failure."""
        if len(entries) < MIN_ENTRIES:
            return INSUFFICIENT_DATA_MESSAGE
        if not self.api_key:
            logger.warning("Discovery requested without an API key")
            return ERROR_MESSAGE

        body = {"contents": [{"parts": [{"text": build_discovery_prompt(entries, tz)}]}]}
        url = f"{self.base_url}/models/{self.model}:generateContent"

        client = self._client or httpx.AsyncClient(timeout=120.0)
        try:
            response = await client.post(url, params={"key": self.api_key}, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Discovery request failed: %s", e)
            return ERROR_MESSAGE
        finally:
            if self._client is None:
                await client.aclose()

        try:
            text = _extract_text(data)
        except ValueError as e:
            logger.error("Discovery response malformed: %s", e)
            return ERROR_MESSAGE
        return text or EMPTY_MESSAGE


def _extract_text(data) -> str:
    """Join the text parts of the first candidate that has any.

    Raises:
        ValueError: If the response is not shaped like a generateContent reply
    """
    if not isinstance(data, dict):
        raise ValueError("response is not an object")
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ValueError("candidates is not a list")
    parts: list[str] = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise ValueError("candidate is not an object")
        content = candidate.get("content") or {}
        if not isinstance(content, dict) or not isinstance(content.get("parts") or [], list):
            raise ValueError("candidate content is malformed")
        for part in content.get("parts") or []:
            if not isinstance(part, dict):
                raise ValueError("content part is not an object")
            text = part.get("text")
            if isinstance(text, str) and text:
                parts.append(text)
        if parts:
            break
    return "".join(parts).strip()
