"""Best-effort extraction of canonical text from raw backend stdout."""

from __future__ import annotations

import json
import re

from agent_timebox.runtime.models import NormalizedResponse, StructuredResponse

DEFAULT_NOISE_PREFIXES: tuple[str, ...] = ("Loaded cached credentials.",)
_RESULT_KEYS = ("result", "response")


class ResponseNormalizer:
    """Total function from raw output to text or a structured result; never raises."""

    def __init__(self, noise_prefixes: tuple[str, ...] = DEFAULT_NOISE_PREFIXES) -> None:
        self._noise_patterns = tuple(
            re.compile(rf"^\s*{re.escape(prefix)}\s*", re.IGNORECASE) for prefix in noise_prefixes
        )

    def normalize(self, raw_text: str | None) -> NormalizedResponse:
        if not isinstance(raw_text, str):
            return ""
        cleaned = self._strip_noise(raw_text)
        if not cleaned.startswith("{"):
            return cleaned
        return _extract_json_result(cleaned)

    def _strip_noise(self, text: str) -> str:
        for pattern in self._noise_patterns:
            stripped, count = pattern.subn("", text, count=1)
            if count:
                return stripped.strip()
        return text.strip()


def _extract_json_result(cleaned: str) -> NormalizedResponse:
    try:
        payload = json.loads(cleaned)
    except (ValueError, RecursionError):
        return cleaned
    if not isinstance(payload, dict):
        return cleaned
    for key in _RESULT_KEYS:
        value = payload.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, str):
            return value
        return StructuredResponse(result=value, raw=cleaned)
    return cleaned
