from sqlalchemy import Column, String, Integer, DateTime, Text, Index, CheckConstraint, Enum
from sqlalchemy.orm import relationship
import enum

from app.platform.db.base import BaseModel


class ScanStatus(enum.Enum):
    """Scan lifecycle: pending -> running -> completed | failed"""
    pending = "PENDING"
    running = "RUNNING"
    completed = "COMPLETED"
    failed = "FAILED"


class ComplianceLevel(enum.Enum):
    """Requested strictness tier, mapped onto WCAG A, AA and AAA."""
    minimal = "minimal"
    standard = "standard"
    strict = "strict"

    @property
    def wcag_level(self) -> str:
        return {"minimal": "A", "standard": "AA", "strict": "AAA"}[self.value]


class Scan(BaseModel):
    """
    One accessibility scan attempt against one URL.

    Written only by the orchestrator while it runs; read by the API afterwards.
    """
    __tablename__ = "scans"

    # Owner as supplied by the identity provider (JWT "sub")
    user_id = Column(String(255), nullable=False, index=True)

    url = Column(String(2048), nullable=False)
    level = Column(Enum(ComplianceLevel), default=ComplianceLevel.standard, nullable=False)

    # Lifecycle (state machine enforced by ScanStore)
    status = Column(Enum(ScanStatus), default=ScanStatus.pending, nullable=False, index=True)
    progress = Column(Integer, default=0, nullable=False)
    status_message = Column(String(255), nullable=True)

    # Results
    score = Column(Integer, nullable=True)  # 0-100
    insights = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    issues = relationship(
        "ScanIssue",
        back_populates="scan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="check_scan_progress_range"),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="check_scan_score_range"),
        Index("idx_scans_user_created", "user_id", "created_at"),
    )
