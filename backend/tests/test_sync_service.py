import asyncio

import pytest

from seller_hub.models_sqlalchemy.models import SyncRun, SyncRunStatus
from seller_hub.services.errors import SellerApiError
from seller_hub.services.session_service import session_service
from seller_hub.services.sync_service import list_sync_runs, run_sync_all


@pytest.fixture
def dashboard_session(db_session):
    return session_service.create_session(
        db_session,
        user_id="user-1",
        email="seller@example.com",
        upstream_token="upstream-jwt",
    )


@pytest.mark.asyncio
async def test_sync_all_records_completed_run(db_session, fake_api, dashboard_session):
    fake_api.add("POST", "/ml-accounts/sync-all", {
        "success": True,
        "message": "Sincronização concluída",
        "data": {
            "results": [
                {"accountId": "a", "success": True},
                {"accountId": "b", "success": False, "error": "token expired"},
            ],
            "summary": {"total": 2, "successful": 1, "failed": 1},
        },
    })

    async with fake_api.client() as client:
        summary = await run_sync_all(db_session, dashboard_session, client)

    assert summary.status == SyncRunStatus.completed.value
    assert (summary.total, summary.successful, summary.failed) == (2, 1, 1)
    assert summary.message == "Sincronização concluída"

    run = db_session.query(SyncRun).one()
    assert run.id == summary.run_id
    assert run.finished_at is not None
    assert len(run.details["results"]) == 2


@pytest.mark.asyncio
async def test_sync_all_summary_derived_from_results(db_session, fake_api, dashboard_session):
    fake_api.add("POST", "/ml-accounts/sync-all", {
        "results": [{"success": True}, {"success": True}, {"success": False}],
    })

    async with fake_api.client() as client:
        summary = await run_sync_all(db_session, dashboard_session, client)

    assert (summary.total, summary.successful, summary.failed) == (3, 2, 1)


@pytest.mark.asyncio
async def test_sync_all_failure_is_recorded_and_reraised(db_session, fake_api, dashboard_session):
    fake_api.fail("POST", "/ml-accounts/sync-all", status_code=502, message="upstream down")

    async with fake_api.client() as client:
        with pytest.raises(SellerApiError):
            await run_sync_all(db_session, dashboard_session, client)

    run = db_session.query(SyncRun).one()
    assert run.status == SyncRunStatus.failed.value
    assert "upstream down" in run.error_message


@pytest.mark.asyncio
async def test_list_sync_runs_newest_first(db_session, fake_api, dashboard_session):
    fake_api.add("POST", "/ml-accounts/sync-all", {"data": {"summary": {"total": 1, "successful": 1, "failed": 0}}})

    async with fake_api.client() as client:
        first = await run_sync_all(db_session, dashboard_session, client)
        second = await run_sync_all(db_session, dashboard_session, client)

    runs = list_sync_runs(db_session, "user-1", limit=10)

    assert [r.id for r in runs] == [second.run_id, first.run_id]
    assert list_sync_runs(db_session, "someone-else") == []


class _BrokenSyncClient:
    def __init__(self, error: BaseException):
        self.error = error

    async def sync_all_accounts(self):
        raise self.error


@pytest.mark.asyncio
async def test_unexpected_error_marks_run_failed(db_session, dashboard_session):
    with pytest.raises(RuntimeError):
        await run_sync_all(db_session, dashboard_session, _BrokenSyncClient(RuntimeError("bad payload")))

    run = db_session.query(SyncRun).one()
    assert run.status == SyncRunStatus.failed.value
    assert run.finished_at is not None
    assert "RuntimeError: bad payload" in run.error_message


@pytest.mark.asyncio
async def test_cancelled_sync_marks_run_failed(db_session, dashboard_session):
    with pytest.raises(asyncio.CancelledError):
        await run_sync_all(db_session, dashboard_session, _BrokenSyncClient(asyncio.CancelledError()))

    run = db_session.query(SyncRun).one()
    assert run.status == SyncRunStatus.failed.value
    assert run.finished_at is not None
    assert "cancelled" in run.error_message


@pytest.mark.asyncio
async def test_cancelled_request_task_leaves_no_running_run(db_session, fake_api, dashboard_session):
    fake_api.add("POST", "/ml-accounts/sync-all", {"success": True, "data": {}}, delay=5.0)

    async with fake_api.client() as client:
        task = asyncio.create_task(run_sync_all(db_session, dashboard_session, client))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    statuses = [run.status for run in db_session.query(SyncRun).all()]
    assert statuses == [SyncRunStatus.failed.value]
