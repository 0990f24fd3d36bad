from sqlalchemy import Column, String, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship
import enum

from app.platform.db.base import BaseModel


class IssueSeverity(enum.Enum):
    """Issue severity levels, ordered info < warning < critical"""
    info = "INFO"
    warning = "WARNING"
    critical = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(IssueSeverity).index(self)


class ScanIssue(BaseModel):
    """
    One accessibility finding attached to a scan.

    Rows are written once, in a batch, before the scan is marked completed.
    """
    __tablename__ = "scan_issues"

    scan_id = Column(String, ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(255), nullable=False)
    severity = Column(Enum(IssueSeverity), nullable=False, index=True)
    description = Column(Text, nullable=False)
    element = Column(Text, nullable=True)  # Offending element descriptor
    recommendation = Column(Text, nullable=True)
    compliance_reference = Column(String(255), nullable=True)  # e.g. "WCAG 1.1.1"

    scan = relationship("Scan", back_populates="issues", lazy="select")
