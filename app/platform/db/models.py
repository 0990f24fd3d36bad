"""
Import every model module so Base.metadata is complete.

Used by alembic and by the test fixtures that create the schema.
"""
from app.platform.db.base import Base
from app.features.credits.models.user_credit import UserCredit  # noqa: F401
from app.features.scan.models.scan import Scan  # noqa: F401
from app.features.scan.models.scan_issue import ScanIssue  # noqa: F401

__all__ = ["Base"]
