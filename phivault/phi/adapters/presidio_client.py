"""Presidio Analyzer REST client implementing EntityRecognizerPort.

Posts ``{"text", "language"}`` to ``<base_url>/analyze`` and converts the
recognizer results into DetectionSpans.

Failure handling is an explicit policy. ``open`` (the default) treats any
transport error, timeout, non-2xx response, or malformed body as "no findings"
and logs a warning, which means nothing in that field gets redacted.
``closed`` raises RecognizerUnavailableError so the write is rejected.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx

from phivault.common.exceptions import RecognizerUnavailableError
from phivault.config.settings import PHISettings
from phivault.infra.safe_logging import safe_log_text
from phivault.phi.ports import DetectionSpan, EntityRecognizerPort

logger = logging.getLogger(__name__)

FailurePolicy = Literal["open", "closed"]


def parse_recognizer_results(payload: Any, text: str) -> list[DetectionSpan]:
    """Convert a Presidio JSON array into spans, skipping malformed items."""
    if not isinstance(payload, list):
        raise ValueError("Presidio response is not a JSON array")

    spans: list[DetectionSpan] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        start, end = item.get("start"), item.get("end")
        entity_type = item.get("entity_type")
        score = item.get("score", 0.0)
        if not isinstance(start, int) or not isinstance(end, int) or not isinstance(entity_type, str):
            continue
        try:
            score = min(1.0, max(0.0, float(score)))
        except (TypeError, ValueError):
            continue
        span = DetectionSpan(start=start, end=end, entity_type=entity_type, score=score)
        if not span.is_within(text):
            logger.debug("Skipping out-of-range recognizer span", extra={"entity_type": entity_type})
            continue
        spans.append(span)
    return spans


class PresidioAnalyzerClient(EntityRecognizerPort):
    """Async client for a Presidio Analyzer service."""

    def __init__(
        self,
        base_url: str,
        *,
        language: str = "en",
        timeout_s: float = 10.0,
        score_threshold: float | None = None,
        failure_policy: FailurePolicy = "open",
        client: httpx.AsyncClient | None = None,
    ):
        if failure_policy not in ("open", "closed"):
            raise ValueError(f"Unknown recognizer failure policy: {failure_policy}")
        self._url = f"{base_url.rstrip('/')}/analyze"
        self._language = language
        self._score_threshold = score_threshold
        self._failure_policy = failure_policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @classmethod
    def from_settings(
        cls, settings: PHISettings, client: httpx.AsyncClient | None = None
    ) -> "PresidioAnalyzerClient":
        return cls(
            settings.analyzer_url,
            language=settings.analyzer_language,
            timeout_s=settings.analyzer_timeout_s,
            score_threshold=settings.analyzer_score_threshold,
            failure_policy=settings.recognizer_failure_policy,
            client=client,
        )

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    async def analyze(self, text: str, language: str | None = None) -> list[DetectionSpan]:
        if not text:
            return []

        body: dict[str, Any] = {"text": text, "language": language or self._language}
        if self._score_threshold is not None:
            body["score_threshold"] = self._score_threshold

        try:
            resp = await self._client.post(self._url, json=body)
        except httpx.HTTPError as exc:
            return self._on_failure("transport_error", error_type=type(exc).__name__, text=text, cause=exc)

        if resp.status_code >= 400:
            return self._on_failure("http_status", status_code=resp.status_code, text=text)

        try:
            return parse_recognizer_results(resp.json(), text)
        except ValueError as exc:
            return self._on_failure("malformed_response", error_type=type(exc).__name__, text=text, cause=exc)

    def _on_failure(
        self,
        reason: str,
        *,
        text: str,
        status_code: int | None = None,
        error_type: str | None = None,
        cause: Exception | None = None,
    ) -> list[DetectionSpan]:
        logger.warning(
            "Presidio analyzer call failed; failure policy=%s",
            self._failure_policy,
            extra={
                "reason": reason,
                "status_code": status_code,
                "error_type": error_type,
                "text": safe_log_text(text),
            },
        )
        if self._failure_policy == "closed":
            raise RecognizerUnavailableError(
                f"Presidio analyzer unavailable ({reason})", status_code=status_code
            ) from cause
        return []

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PresidioAnalyzerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = ["PresidioAnalyzerClient", "parse_recognizer_results", "FailurePolicy"]
