"""
AI Summarization Service using the OpenAI chat-completions API.

Provides post summaries for the feed, trend classification, and a raw
diagnostic probe of the API.

The response body is always read as text first. Error responses from the
API (or from a proxy in front of it) are sometimes HTML, so the body is only
parsed as JSON after the status and content type say it is JSON.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from nichetrack.config import (
    OPENAI_API_KEY,
    OPENAI_MODEL,
    OPENAI_ORG_ID,
    OPENAI_TEMPERATURE,
    REQUEST_TIMEOUT,
)
from nichetrack.errors import EnrichmentError
from nichetrack.models.trend import TREND_CATEGORIES

logger = logging.getLogger(__name__)


@dataclass
class TrendAnalysis:
    """Classification of a trending phrase."""
    title: str
    description: str
    category: str
    ideas: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "ideas": list(self.ideas),
        }


@dataclass
class ProbeResult:
    """Raw outcome of a diagnostic chat-completion call."""
    status: int
    headers: Dict[str, str]
    body: str

    @property
    def success(self) -> bool:
        return self.status == 200


class AISummarizer:
    """AI-powered summarization using the OpenAI chat-completions API."""

    API_URL = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        org_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else OPENAI_API_KEY
        self.model = model or OPENAI_MODEL
        self.temperature = OPENAI_TEMPERATURE if temperature is None else temperature
        self.org_id = org_id if org_id is not None else OPENAI_ORG_ID
        self.timeout = timeout or REQUEST_TIMEOUT
        self._session = session or requests.Session()

    def is_available(self) -> bool:
        """Check if AI summarization is available (API key configured)."""
        return bool(self.api_key)

    def summarize_post(self, title: str, comments: List[str]) -> Optional[str]:
        """
        Summarize a post and its top comments.

        Args:
            title: The post title.
            comments: Qualifying comment excerpts (may be empty).

        Returns:
            A short summary, or None when there is nothing to summarize
            or the model returned empty content.

        Raises:
            EnrichmentError: The API call failed or returned an unusable body.
        """
        if not comments:
            return None

        self._require_key()
        prompt = self._build_summary_prompt(title, comments)
        return self._call_api(prompt, max_tokens=200)

    def classify_trend(self, keyword: str) -> TrendAnalysis:
        """
        Classify a trending phrase (usually a top post title).

        Raises:
            EnrichmentError: The API call failed or the answer is not the
                expected JSON object.
        """
        self._require_key()
        content = self._call_api(self._build_trend_prompt(keyword), max_tokens=400)
        if not content:
            raise EnrichmentError("No content returned from OpenAI")

        try:
            data = json.loads(_strip_code_fence(content))
        except ValueError as e:
            raise EnrichmentError("Trend analysis is not valid JSON", detail=content[:200]) from e

        if not isinstance(data, dict) or not data.get("title"):
            raise EnrichmentError("Trend analysis is missing a title", detail=content[:200])

        category = str(data.get("category", "")).strip().lower()
        if category not in TREND_CATEGORIES:
            category = "tech"

        ideas = data.get("ideas") or []
        if isinstance(ideas, str):
            ideas = [ideas]

        return TrendAnalysis(
            title=str(data["title"]).strip(),
            description=str(data.get("description", "")).strip(),
            category=category,
            ideas=[str(i).strip() for i in ideas if str(i).strip()],
        )

    def probe(self, prompt: str = "Say hello like a pirate.") -> ProbeResult:
        """
        Send a trivial prompt and return status, headers and raw body.

        The body is never parsed; this is for checking credentials and
        connectivity from a deployed environment.
        """
        self._require_key()
        try:
            response = self._session.post(
                self.API_URL,
                headers=self._headers(),
                json=self._payload(prompt, max_tokens=50),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EnrichmentError(f"OpenAI request failed: {e}") from e

        logger.info("[openai] probe status %s", response.status_code)
        return ProbeResult(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.text,
        )

    def _require_key(self) -> None:
        if not self.is_available():
            raise EnrichmentError("AI summarization not configured. Add OPENAI_API_KEY to .env")

    def _build_summary_prompt(self, title: str, comments: List[str]) -> str:
        """Build prompt for a single post summary."""
        comments_text = "\n".join(f"- {c}" for c in comments)
        return f"""Summarize this Reddit discussion in 2-3 concise sentences. Focus on:
- What the post is about
- The main opinions or advice in the comments

Title: {title}

Top comments:
{comments_text}

Write a clear, informative summary (no bullet points, just flowing text):"""

    def _build_trend_prompt(self, keyword: str) -> str:
        """Build prompt for trend classification."""
        return f"""You are a trend researcher. Analyze this phrase and return a JSON object:

- title: a short catchy trend title
- description: what the trend is and why it's interesting (1-2 sentences)
- category: one of {", ".join(TREND_CATEGORIES)}
- ideas: 2 bullet content ideas (blog, YouTube, etc.)

Respond with ONLY valid JSON (no markdown, no extra text).

Trend keyword: "{keyword}\""""

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.org_id:
            headers["OpenAI-Organization"] = self.org_id
        return headers

    def _payload(self, prompt: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

    def _call_api(self, prompt: str, max_tokens: int = 300) -> Optional[str]:
        """
        Make API call to OpenAI and return the message content.

        Returns None when the API answered successfully with empty content.
        """
        try:
            response = self._session.post(
                self.API_URL,
                headers=self._headers(),
                json=self._payload(prompt, max_tokens),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EnrichmentError(f"OpenAI request failed: {e}") from e

        body = response.text
        content_type = response.headers.get("Content-Type", "")

        if not 200 <= response.status_code < 300:
            raise EnrichmentError(
                f"OpenAI error: {_error_message(body, content_type)}",
                status_code=response.status_code,
                detail=body[:200],
            )

        if "json" not in content_type.lower():
            raise EnrichmentError(
                f"OpenAI returned non-JSON content ({content_type or 'no content type'})",
                status_code=response.status_code,
                detail=body[:200],
            )

        try:
            data = json.loads(body)
        except ValueError as e:
            raise EnrichmentError(
                "Failed to parse OpenAI response as JSON",
                status_code=response.status_code,
                detail=body[:200],
            ) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise EnrichmentError("OpenAI response has no choices", detail=body[:200]) from e

        if content is not None and not isinstance(content, str):
            raise EnrichmentError("OpenAI message content is not text", detail=body[:200])

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens", 0) if isinstance(usage, dict) else 0
        logger.debug("[openai] %s used %s tokens", self.model, tokens)

        content = (content or "").strip()
        return content or None


def _error_message(body: str, content_type: str) -> str:
    """Pull error.message out of a JSON error body; fall back to the raw text."""
    if "json" in content_type.lower():
        try:
            message = json.loads(body).get("error", {}).get("message")
            if message:
                return message
        except (ValueError, AttributeError):
            pass
    text = " ".join(body.split())
    return text[:120] or "empty response"


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
