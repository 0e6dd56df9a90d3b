"""
リソース自動登録ワーカー

災害承認イベントを購読し、asyncio.Queue 経由で自動登録をバックグラウンド実行します。
承認処理側は自動登録の完了を待たず、失敗もログに残すのみで呼び出し元へは伝播しません。
承認イベントは外部の承認処理が ResourceService.notify_disaster_approved で発行します。
"""

import asyncio

from src.config.logging import get_logger, get_logger_with_context
from src.config.settings import get_settings
from src.services.notifier import DISASTER_APPROVED, EventBroadcaster, Subscription, get_broadcaster
from src.services.resource_service import AutoPopulateResult, ResourceService

logger = get_logger(__name__)


class ResourcePopulationWorker:
    """リソース自動登録ワーカー（asyncio.Queue ベース）"""

    def __init__(
        self,
        resource_service: ResourceService,
        broadcaster: EventBroadcaster | None = None,
    ):
        self.settings = get_settings()
        self.resource_service = resource_service
        self.broadcaster = broadcaster or get_broadcaster()
        self.is_running = False

        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.worker_task: asyncio.Task | None = None
        self.listener_task: asyncio.Task | None = None
        self._subscription: Subscription | None = None

    async def start(self):
        """ワーカーを開始"""
        if self.is_running:
            logger.warning("Population worker already running")
            return

        self.is_running = True

        # 承認イベントは取りこぼさないよう無制限キューで購読
        self._subscription = self.broadcaster.subscribe(DISASTER_APPROVED, maxsize=0)
        self.listener_task = asyncio.create_task(self._listen_loop())
        self.worker_task = asyncio.create_task(self._worker_loop())
        logger.info("Population worker started")

    async def stop(self):
        """ワーカーを停止"""
        if not self.is_running:
            return

        self.is_running = False
        if self._subscription is not None:
            self.broadcaster.unsubscribe(self._subscription)
            self._subscription = None

        for task in (self.listener_task, self.worker_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self.listener_task = None
        self.worker_task = None
        logger.info("Population worker stopped")

    async def enqueue(self, disaster_id: str) -> None:
        """自動登録タスクをキューに追加

        Args:
            disaster_id: 災害 ID
        """
        await self.queue.put(disaster_id)
        logger.info(
            f"Auto-population enqueued: {disaster_id}", extra={"disaster_id": disaster_id}
        )

    async def _listen_loop(self):
        """承認イベントをキューへ転送"""
        while self.is_running:
            event = await self._subscription.get()
            disaster_id = event.payload.get("disaster_id")
            if not disaster_id:
                logger.warning(f"Ignoring {event.name} event without disaster_id")
                continue
            await self.enqueue(disaster_id)

    async def _worker_loop(self):
        """ワーカーループ（イベント駆動）"""
        logger.info("Worker loop started")

        while self.is_running:
            try:
                disaster_id = await self.queue.get()
                try:
                    await self.process(disaster_id)
                finally:
                    self.queue.task_done()

            except asyncio.CancelledError:
                logger.info("Worker loop cancelled")
                break
            except Exception as e:
                logger.exception(f"Error in worker loop: {str(e)}")
                # エラーが発生しても続行
                await asyncio.sleep(self.settings.worker_error_retry_interval)

        logger.info("Worker loop ended")

    async def process(self, disaster_id: str) -> AutoPopulateResult:
        """1 件の自動登録を実行して結果をログに記録"""
        task_logger = get_logger_with_context(__name__, disaster_id=disaster_id)

        result = await self.resource_service.auto_populate(disaster_id)
        if result.error:
            task_logger.error(
                f"Background auto-population failed ({result.status.value}): {result.error}"
            )
        elif result.inserted:
            task_logger.info(f"Background auto-population inserted {len(result.inserted)}")
        else:
            task_logger.info(f"Background auto-population finished: {result.message}")
        return result
