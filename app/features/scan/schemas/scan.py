"""
Scan Schemas

Request and response models for the scan API endpoints, plus the task
description handed to the worker queue.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.features.scan.models.scan import ComplianceLevel, ScanStatus
from app.features.scan.models.scan_issue import IssueSeverity


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# Admission
# ============================================================================

class ScanCreateRequest(BaseModel):
    """Request to scan one page."""
    url: AnyHttpUrl
    level: ComplianceLevel = ComplianceLevel.standard

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://example.com",
                "level": "standard",
            }
        }
    )


class ScanStartResponse(CamelModel):
    """Response after a scan has been admitted and handed to a worker."""
    scan_id: str
    status: str = "started"
    message: str = "Scan initiated successfully"


class ScanTask(BaseModel):
    """Unit of work placed on the queue. Everything a worker needs to run one scan."""
    scan_id: str
    url: str
    level: ComplianceLevel


# ============================================================================
# Reads
# ============================================================================

class IssueResponse(CamelModel):
    id: str
    scan_id: str
    type: str
    severity: IssueSeverity
    description: str
    element: Optional[str] = None
    recommendation: Optional[str] = None
    compliance_reference: Optional[str] = None


class ScanResponse(CamelModel):
    """Full scan record with its issues."""
    id: str
    user_id: str
    url: str
    level: ComplianceLevel
    status: ScanStatus
    progress: int
    status_message: Optional[str] = None
    score: Optional[int] = None
    insights: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    issues: List[IssueResponse] = Field(default_factory=list)


class IssueSummary(CamelModel):
    id: str
    type: str
    severity: IssueSeverity
    description: str


class ScanHistoryItem(CamelModel):
    id: str
    url: str
    level: ComplianceLevel
    status: ScanStatus
    progress: int
    score: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    issues: List[IssueSummary] = Field(default_factory=list)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class ScanListResponse(CamelModel):
    scans: List[ScanHistoryItem]
    pagination: Pagination

