# tests/unit/test_scheduler.py
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from app import scheduler as scheduler_module
from app.cli.track_shipments import track_shipments


@pytest.fixture(autouse=True)
def reset_scheduler():
    scheduler_module.scheduler = None
    yield
    scheduler_module.scheduler = None


@pytest.fixture
def fake_carrier(mocker):
    carrier = AsyncMock()
    for module in ("app.scheduler", "app.cli.track_shipments"):
        mocker.patch(f"{module}.get_carrier", return_value=carrier)
    return carrier


@pytest.fixture
def fake_service(mocker, fake_carrier):
    service = MagicMock()
    service.refresh_in_flight = AsyncMock(
        return_value={"checked": 3, "updated": 2, "unchanged": 1, "errors": []}
    )
    service.track_and_update = AsyncMock(
        return_value={"shipment_id": 7, "carrier_status_code": "D", "status": "delivered", "changed": True}
    )
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=MagicMock())
    session_cm.__aexit__ = AsyncMock(return_value=False)
    for module in ("app.scheduler", "app.cli.track_shipments"):
        mocker.patch(f"{module}.async_session", return_value=session_cm)
        mocker.patch(f"{module}.ShipmentService", return_value=service)
    return service


@pytest.mark.asyncio
async def test_status_before_creation():
    assert await scheduler_module.get_scheduler_status() == {"status": "not_initialized", "jobs": []}


@pytest.mark.asyncio
async def test_create_scheduler_registers_tracking_job():
    created = scheduler_module.create_scheduler()

    assert scheduler_module.create_scheduler() is created
    job = created.get_job("refresh_tracking")
    assert job is not None
    assert job.max_instances == 1

    status = await scheduler_module.get_scheduler_status()
    assert status["status"] == "stopped"
    assert [j["id"] for j in status["jobs"]] == ["refresh_tracking"]


@pytest.mark.asyncio
async def test_start_and_stop():
    await scheduler_module.start_scheduler()
    assert scheduler_module.scheduler.running

    await scheduler_module.stop_scheduler()
    assert scheduler_module.scheduler is None


@pytest.mark.asyncio
async def test_refresh_tracking_task(fake_service):
    summary = await scheduler_module.refresh_tracking_task()

    assert summary["updated"] == 2
    fake_service.refresh_in_flight.assert_awaited_once()


def test_cli_refreshes_all_in_flight(fake_service):
    result = CliRunner().invoke(track_shipments, [])

    assert result.exit_code == 0
    assert "Checked 3 shipments: 2 updated, 1 unchanged, 0 errors" in result.output


def test_cli_tracks_one_shipment(fake_service):
    result = CliRunner().invoke(track_shipments, ["--shipment-id", "7"])

    assert result.exit_code == 0
    assert "carrier code D -> delivered (updated)" in result.output
    fake_service.track_and_update.assert_awaited_once_with(7)


@pytest.mark.asyncio
async def test_refresh_tracking_task_closes_carrier(fake_service, fake_carrier):
    await scheduler_module.refresh_tracking_task()

    fake_carrier.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_refresh_tracking_task_closes_carrier_on_error(fake_service, fake_carrier):
    fake_service.refresh_in_flight.side_effect = RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await scheduler_module.refresh_tracking_task()

    fake_carrier.close.assert_awaited_once()


def test_cli_closes_carrier(fake_service, fake_carrier):
    result = CliRunner().invoke(track_shipments, ["--shipment-id", "7"])

    assert result.exit_code == 0
    fake_carrier.close.assert_awaited_once()
