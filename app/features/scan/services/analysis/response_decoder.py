"""
Strict decoding of inference responses.

The decoder never raises: it returns Decoded with a validated payload, or
Malformed carrying the raw text and the reason it was rejected.
"""
import json
import re
from dataclasses import dataclass
from typing import Union

from pydantic import ValidationError

from app.features.scan.schemas.insight import InsightPayload

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


@dataclass(frozen=True)
class Decoded:
    payload: InsightPayload


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str


DecodeResult = Union[Decoded, Malformed]


def extract_json_text(raw: str) -> str:
    """
    Peel markdown code fences and stray prose off a completion, leaving the
    outermost JSON object.
    """
    text = raw.strip()

    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def decode_insight_response(raw: str) -> DecodeResult:
    if not raw or not raw.strip():
        return Malformed(raw_text=raw or "", reason="empty response")

    try:
        data = json.loads(extract_json_text(raw))
    except json.JSONDecodeError as e:
        return Malformed(raw_text=raw, reason=f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return Malformed(raw_text=raw, reason="response is not a JSON object")

    try:
        return Decoded(payload=InsightPayload.model_validate(data))
    except ValidationError as e:
        return Malformed(raw_text=raw, reason=f"schema mismatch: {e.error_count()} errors")
