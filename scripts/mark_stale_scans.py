"""
Fail scans stuck in PENDING/RUNNING, the same sweep Celery Beat runs.

    python -m scripts.mark_stale_scans --minutes 30
"""
import argparse
import asyncio

from app.features.scan.workers.periodic_tasks import reconcile_stale_scans_async
from app.features.scan.services.store.scan_store import ScanStore
from app.platform.config import settings


def main():
    parser = argparse.ArgumentParser(description="Mark stale scans as failed")
    parser.add_argument("--minutes", type=int, default=settings.STALE_SCAN_MINUTES)
    args = parser.parse_args()

    failed = asyncio.run(reconcile_stale_scans_async(ScanStore(), args.minutes))
    print(f"Marked {len(failed)} stale scans as failed")
    for scan_id in failed:
        print(f"  {scan_id}")


if __name__ == "__main__":
    main()
