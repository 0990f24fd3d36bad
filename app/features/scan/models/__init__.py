"""
Scan models package.
"""
from app.features.scan.models.scan import Scan, ScanStatus, ComplianceLevel
from app.features.scan.models.scan_issue import ScanIssue, IssueSeverity

__all__ = ["Scan", "ScanStatus", "ComplianceLevel", "ScanIssue", "IssueSeverity"]
