"""Stub recognizer for demo/testing use only.

Reports a fixed span for every literal occurrence of each configured needle.
Never use in place of a real recognizer for real PHI.
"""

from __future__ import annotations

from dataclasses import dataclass

from phivault.phi.ports import DetectionSpan, EntityRecognizerPort


@dataclass(frozen=True)
class StubFinding:
    needle: str
    entity_type: str
    score: float = 0.85


class StubRecognizer(EntityRecognizerPort):
    def __init__(self, findings: list[StubFinding] | None = None):
        self.findings = list(findings or [])
        self.calls: list[tuple[str, str]] = []

    async def analyze(self, text: str, language: str = "en") -> list[DetectionSpan]:
        self.calls.append((text, language))
        spans: list[DetectionSpan] = []
        for finding in self.findings:
            if not finding.needle:
                continue
            start = text.find(finding.needle)
            while start != -1:
                end = start + len(finding.needle)
                spans.append(
                    DetectionSpan(start=start, end=end, entity_type=finding.entity_type, score=finding.score)
                )
                start = text.find(finding.needle, end)
        return spans


__all__ = ["StubFinding", "StubRecognizer"]
