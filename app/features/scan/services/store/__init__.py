from app.features.scan.services.store.scan_store import ScanStore

__all__ = ["ScanStore"]


def get_scan_store() -> ScanStore:
    """FastAPI dependency for the scan store bound to the application's sessions."""
    return ScanStore()
