from datetime import timedelta

import pytest
from sqlalchemy import update

from app.features.scan.exceptions import ScanNotFoundError, ScanTransitionError
from app.features.scan.models.scan import ComplianceLevel, Scan, ScanStatus
from app.features.scan.models.scan_issue import IssueSeverity
from app.features.scan.schemas.insight import IssueDraft
from app.features.scan.services.store.scan_store import page_count, sort_issues
from app.platform.db.base import utcnow


def draft(severity: str, type_: str = "Issue") -> IssueDraft:
    return IssueDraft(type=type_, severity=severity, description=f"{type_} description")


async def running_scan(store, user_id: str = "user-1") -> str:
    scan_id = await store.create("https://example.com/", ComplianceLevel.standard, user_id)
    assert await store.start(scan_id) is True
    return scan_id


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_is_pending(self, store):
        scan_id = await store.create("https://example.com/", ComplianceLevel.strict, "user-1")

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.pending
        assert scan.progress == 0
        assert scan.level == ComplianceLevel.strict
        assert scan.score is None

    @pytest.mark.asyncio
    async def test_start_moves_to_running_once(self, store):
        scan_id = await store.create("https://example.com/", ComplianceLevel.standard, "user-1")

        assert await store.start(scan_id) is True
        assert await store.start(scan_id) is False

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.running
        assert scan.progress == 10
        assert scan.status_message == "Initializing browser..."
        assert scan.started_at is not None

    @pytest.mark.asyncio
    async def test_start_unknown_scan(self, store):
        with pytest.raises(ScanNotFoundError):
            await store.start("missing")

    @pytest.mark.asyncio
    async def test_progress_moves_forward(self, store):
        scan_id = await running_scan(store)

        await store.update_progress(scan_id, 25, "Loading webpage...")
        await store.update_progress(scan_id, 25, "Still loading...")
        await store.update_progress(scan_id, 50, "Analyzing accessibility...")

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.progress == 50
        assert scan.status_message == "Analyzing accessibility..."

    @pytest.mark.asyncio
    async def test_progress_never_goes_backwards(self, store):
        scan_id = await running_scan(store)
        await store.update_progress(scan_id, 50, "Analyzing accessibility...")

        with pytest.raises(ScanTransitionError):
            await store.update_progress(scan_id, 25, "Loading webpage...")

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.progress == 50

    @pytest.mark.asyncio
    async def test_progress_out_of_range(self, store):
        scan_id = await running_scan(store)
        with pytest.raises(ValueError):
            await store.update_progress(scan_id, 101, "Too far")

    @pytest.mark.asyncio
    async def test_progress_requires_running(self, store):
        scan_id = await store.create("https://example.com/", ComplianceLevel.standard, "user-1")
        with pytest.raises(ScanTransitionError):
            await store.update_progress(scan_id, 25, "Loading webpage...")

    @pytest.mark.asyncio
    async def test_complete(self, store):
        scan_id = await running_scan(store)
        await store.append_issues(scan_id, [draft("warning"), draft("critical")])
        await store.complete(scan_id, 82, "Mostly accessible")

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.completed
        assert scan.progress == 100
        assert scan.score == 82
        assert scan.insights == "Mostly accessible"
        assert scan.completed_at is not None
        assert len(scan.issues) == 2

    @pytest.mark.asyncio
    async def test_long_issue_reference_fits_column(self, store):
        scan_id = await running_scan(store)
        long_issue = IssueDraft.model_validate(
            {"type": "Contrast", "description": "Low contrast", "complianceReference": "WCAG " + "1.4.3 " * 60}
        )

        assert await store.append_issues(scan_id, [long_issue]) == 1

        scan = await store.get_with_issues(scan_id, "user-1")
        assert len(scan.issues[0].compliance_reference) == 255

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, store):
        scan_id = await running_scan(store)
        await store.complete(scan_id, 90, "Fine")

        with pytest.raises(ScanTransitionError):
            await store.fail(scan_id, "late failure")
        with pytest.raises(ScanTransitionError):
            await store.update_progress(scan_id, 100, "again")
        with pytest.raises(ScanTransitionError):
            await store.append_issues(scan_id, [draft("info")])

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.completed

    @pytest.mark.asyncio
    async def test_fail_resets_progress_and_truncates_message(self, store):
        scan_id = await running_scan(store)
        await store.update_progress(scan_id, 75, "Running AI analysis...")

        await store.fail(scan_id, "Scan failed: " + "x" * 800)

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.failed
        assert scan.progress == 0
        assert scan.score is None
        assert scan.insights.startswith("Scan failed: ")
        assert len(scan.insights) == 500

    @pytest.mark.asyncio
    async def test_pending_scan_can_fail(self, store):
        scan_id = await store.create("https://example.com/", ComplianceLevel.standard, "user-1")
        await store.fail(scan_id, "Scan failed: could not be queued")

        scan = await store.get_with_issues(scan_id, "user-1")
        assert scan.status == ScanStatus.failed


class TestReads:
    @pytest.mark.asyncio
    async def test_owner_scoping(self, store):
        scan_id = await store.create("https://example.com/", ComplianceLevel.standard, "user-1")

        with pytest.raises(ScanNotFoundError):
            await store.get_with_issues(scan_id, "user-2")
        with pytest.raises(ScanNotFoundError):
            await store.get_with_issues("missing", "user-1")

    @pytest.mark.asyncio
    async def test_list_newest_first_with_pagination(self, store):
        ids = []
        for i in range(3):
            ids.append(await store.create(f"https://example.com/{i}", ComplianceLevel.standard, "user-1"))
        await store.create("https://other.example/", ComplianceLevel.standard, "user-2")

        first_page, total = await store.list_for_user("user-1", page=1, limit=2)
        second_page, _ = await store.list_for_user("user-1", page=2, limit=2)

        assert total == 3
        assert [scan.id for scan in first_page + second_page] == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, store):
        done = await running_scan(store)
        await store.complete(done, 70, "ok")
        await store.create("https://example.com/pending", ComplianceLevel.standard, "user-1")

        scans, total = await store.list_for_user("user-1", status=ScanStatus.completed)

        assert total == 1
        assert scans[0].id == done

    @pytest.mark.asyncio
    async def test_stats(self, store):
        first = await running_scan(store)
        await store.append_issues(first, [draft("critical"), draft("critical"), draft("info")])
        await store.complete(first, 60, "a")

        second = await running_scan(store)
        await store.append_issues(second, [draft("critical")])
        await store.complete(second, 80, "b")

        failed = await running_scan(store)
        await store.fail(failed, "Scan failed: boom")

        await running_scan(store, user_id="user-2")

        stats = await store.stats_for_user("user-1")
        assert stats == {"total_scans": 3, "avg_score": 70, "critical_issues": 3}

    @pytest.mark.asyncio
    async def test_stats_for_new_user(self, store):
        assert await store.stats_for_user("nobody") == {
            "total_scans": 0,
            "avg_score": 0,
            "critical_issues": 0,
        }


class TestStaleSweep:
    @pytest.mark.asyncio
    async def test_fails_only_stale_active_scans(self, store, session_factory):
        stale = await running_scan(store)
        fresh = await running_scan(store)
        finished = await running_scan(store)
        await store.complete(finished, 90, "done")

        async with session_factory() as db:
            await db.execute(
                update(Scan)
                .where(Scan.id.in_([stale, finished]))
                .values(updated_at=utcnow() - timedelta(hours=2))
            )
            await db.commit()

        failed = await store.fail_stale(timedelta(minutes=30))

        assert failed == [stale]
        assert (await store.get_with_issues(stale, "user-1")).status == ScanStatus.failed
        assert (await store.get_with_issues(fresh, "user-1")).status == ScanStatus.running
        assert (await store.get_with_issues(finished, "user-1")).status == ScanStatus.completed


def test_sort_issues_critical_first():
    issues = [draft("info", "a"), draft("critical", "b"), draft("warning", "c"), draft("critical", "d")]

    ordered = sort_issues(issues)

    assert [issue.type for issue in ordered] == ["b", "d", "c", "a"]
    assert ordered[0].severity == IssueSeverity.critical


def test_page_count():
    assert page_count(0, 10) == 0
    assert page_count(10, 10) == 1
    assert page_count(11, 10) == 2
