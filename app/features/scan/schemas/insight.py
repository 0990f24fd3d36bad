"""
Insight schemas: the JSON contract the inference service must answer with,
and the typed result the orchestrator persists.
"""
import math
from typing import List, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.features.scan.models.scan_issue import IssueSeverity

SHORT_FIELD_LENGTH = 255

_SEVERITY_SYNONYMS = {
    "critical": IssueSeverity.critical,
    "error": IssueSeverity.critical,
    "high": IssueSeverity.critical,
    "serious": IssueSeverity.critical,
    "severe": IssueSeverity.critical,
    "warning": IssueSeverity.warning,
    "warn": IssueSeverity.warning,
    "medium": IssueSeverity.warning,
    "moderate": IssueSeverity.warning,
    "info": IssueSeverity.info,
    "low": IssueSeverity.info,
    "minor": IssueSeverity.info,
    "notice": IssueSeverity.info,
}


def normalize_severity(value: Any) -> IssueSeverity:
    """Map a model-supplied severity onto CRITICAL/WARNING/INFO. Unknown values become INFO."""
    if isinstance(value, IssueSeverity):
        return value
    if not isinstance(value, str):
        return IssueSeverity.info
    return _SEVERITY_SYNONYMS.get(value.strip().lower(), IssueSeverity.info)


class IssueDraft(BaseModel):
    """An issue as produced by the insight generator, before it is persisted."""
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(min_length=1)
    severity: IssueSeverity = IssueSeverity.info
    description: str = Field(min_length=1)
    element: str = ""
    recommendation: str = ""
    compliance_reference: str = Field(default="", alias="complianceReference")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        return normalize_severity(value)

    @field_validator("element", "recommendation", "compliance_reference", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("type", "compliance_reference")
    @classmethod
    def _fit_column(cls, value: str) -> str:
        # Both are String(255) columns
        return value[:SHORT_FIELD_LENGTH]

    @model_validator(mode="before")
    @classmethod
    def _accept_wcag_reference(cls, data):
        # Older prompts asked for "wcagReference"
        if isinstance(data, dict) and "wcagReference" in data:
            data = dict(data)
            reference = data.pop("wcagReference")
            data.setdefault("complianceReference", reference)
        return data


class InsightPayload(BaseModel):
    """Strict shape of a decoded inference response."""
    score: int
    issues: List[IssueDraft]
    insights: str

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("score must be a number")
        if math.isnan(value) or math.isinf(value):
            raise ValueError("score must be finite")
        return int(round(min(100.0, max(0.0, float(value)))))


class InsightResult(InsightPayload):
    """What the generator hands to the orchestrator; always persistable."""
    is_fallback: bool = False
