"""
ResourcePopulationWorker のユニットテスト
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.notifier import DISASTER_APPROVED, EventBroadcaster
from src.services.population_worker import ResourcePopulationWorker
from src.services.resource_cache import InMemoryResourceCache
from src.services.resource_service import (
    OSM_FAILURE_MESSAGE,
    AutoPopulateResult,
    PopulateStatus,
    ResourceService,
)


@pytest.fixture
def resource_service():
    service = MagicMock()
    service.auto_populate = AsyncMock(
        return_value=AutoPopulateResult(status=PopulateStatus.DONE, inserted=[{"id": "r1"}])
    )
    return service


@pytest.fixture
def broadcaster():
    return EventBroadcaster(queue_size=10)


@pytest.fixture
async def worker(resource_service, broadcaster):
    worker = ResourcePopulationWorker(resource_service, broadcaster=broadcaster)
    await worker.start()
    yield worker
    await worker.stop()


async def drain(worker: ResourcePopulationWorker):
    """キューが空になるまで待機"""
    # 承認イベントの転送を先に進める
    for _ in range(5):
        await asyncio.sleep(0)
    await asyncio.wait_for(worker.queue.join(), timeout=1.0)


@pytest.mark.asyncio
async def test_approval_event_triggers_auto_population(worker, broadcaster, resource_service):
    """承認イベントを受けて自動登録を実行"""
    broadcaster.publish(DISASTER_APPROVED, {"disaster_id": "d1"})

    await drain(worker)

    resource_service.auto_populate.assert_awaited_once_with("d1")


@pytest.mark.asyncio
async def test_notify_disaster_approved_reaches_worker(worker, broadcaster, resource_service):
    """ResourceService.notify_disaster_approved からワーカーへ引き渡される"""
    approver = ResourceService(
        session_maker=MagicMock(),
        overpass_client=MagicMock(),
        cache=InMemoryResourceCache(),
        broadcaster=broadcaster,
    )

    approver.notify_disaster_approved("d2")
    await drain(worker)

    resource_service.auto_populate.assert_awaited_once_with("d2")


@pytest.mark.asyncio
async def test_publish_does_not_wait_for_population(worker, broadcaster, resource_service):
    """承認側は自動登録の完了を待たない"""
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_populate(disaster_id):
        started.set()
        await release.wait()
        return AutoPopulateResult(status=PopulateStatus.DONE, message="No resources found in area.")

    resource_service.auto_populate.side_effect = slow_populate

    broadcaster.publish(DISASTER_APPROVED, {"disaster_id": "d1"})
    await asyncio.wait_for(started.wait(), timeout=1.0)
    assert not release.is_set()

    release.set()
    await drain(worker)


@pytest.mark.asyncio
async def test_failures_are_logged_not_propagated(worker, resource_service):
    """失敗結果や例外があってもワーカーは継続"""
    worker.settings = MagicMock(worker_error_retry_interval=0)
    resource_service.auto_populate.side_effect = [
        AutoPopulateResult(status=PopulateStatus.FAILED, error=OSM_FAILURE_MESSAGE),
        RuntimeError("boom"),
        AutoPopulateResult(status=PopulateStatus.DONE, inserted=[{"id": "r1"}]),
    ]

    for disaster_id in ("d1", "d2", "d3"):
        await worker.enqueue(disaster_id)
    await drain(worker)

    assert resource_service.auto_populate.await_count == 3
    assert worker.is_running
    assert not worker.worker_task.done()


@pytest.mark.asyncio
async def test_event_without_disaster_id_is_ignored(worker, broadcaster, resource_service):
    """disaster_id のないイベントは無視"""
    broadcaster.publish(DISASTER_APPROVED, {})
    broadcaster.publish(DISASTER_APPROVED, {"disaster_id": "d1"})

    await drain(worker)

    resource_service.auto_populate.assert_awaited_once_with("d1")


@pytest.mark.asyncio
async def test_stop_unsubscribes(resource_service, broadcaster):
    """停止すると購読を解除"""
    worker = ResourcePopulationWorker(resource_service, broadcaster=broadcaster)
    await worker.start()
    assert broadcaster.subscriber_count == 1

    await worker.stop()

    assert broadcaster.subscriber_count == 0
    assert worker.worker_task is None
