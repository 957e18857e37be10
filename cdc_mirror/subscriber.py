"""
Event Subscriber — 테이블별 변경 피드 구독 + 테이블별 단일 워커

- 레지스트리의 모든 테이블에 대해 cdc_<table> 채널 LISTEN
- 알림은 테이블별 asyncio.Queue 로 들어가고, 테이블당 워커 1개가 도착 순서대로 반영
  (테이블 간 순서는 보장하지 않음, 테이블당 동시 실행 문장은 최대 1개)
- 연결이 끊기면 지수 백오프로 재연결 후 전체 채널 재구독.
  pg_notify 는 영속되지 않으므로 끊긴 동안의 이벤트는 재전달되지 않는다 → 벌크 동기화로 보정.
  종료 콜백은 현재 LISTEN 연결에 대한 것만 처리한다 (이전 연결의 늦은 콜백은 무시).
"""
import asyncio
import logging
from functools import partial
from typing import Dict, Iterable, Optional

from cdc_mirror.config import settings
from cdc_mirror.models import ChangeEvent
from cdc_mirror.schema import TABLES
from cdc_mirror.source import channel_name

logger = logging.getLogger(__name__)


class EventSubscriber:
    """변경 피드 구독기.

    Attributes:
        source: SourceClient (open_listener / close_listener)
        applier: ChangeApplier (apply_event)
        tables: 구독 테이블 목록 (기본: 레지스트리 전체)
    """

    def __init__(
        self,
        source,
        applier,
        tables: Optional[Iterable[str]] = None,
        backoff_initial: Optional[float] = None,
        backoff_max: Optional[float] = None,
        drain_timeout: float = 10.0,
    ):
        self.source = source
        self.applier = applier
        self.tables = [t.lower() for t in (tables if tables is not None else TABLES.keys())]
        self.backoff_initial = backoff_initial if backoff_initial is not None else settings.SUBSCRIBER_BACKOFF_INITIAL
        self.backoff_max = backoff_max if backoff_max is not None else settings.SUBSCRIBER_BACKOFF_MAX
        self.drain_timeout = drain_timeout

        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._supervisor: Optional[asyncio.Task] = None
        self._listener = None
        self._lost = asyncio.Event()
        self._stopping = False
        self.reconnects = 0

    @property
    def is_running(self) -> bool:
        return bool(self._workers) and not self._stopping

    async def start(self) -> None:
        """워커 생성 + 최초 구독. 최초 구독 실패는 SourceError 로 전파 (기동 실패)."""
        self._stopping = False
        for table in self.tables:
            queue: asyncio.Queue = asyncio.Queue()
            self._queues[table] = queue
            self._workers[table] = asyncio.create_task(self._worker(table, queue), name=f"cdc-worker-{table}")
        try:
            await self._subscribe()
        except Exception:
            await self._cancel_workers()
            raise
        self._supervisor = asyncio.create_task(self._supervise(), name="cdc-supervisor")
        logger.info(f"Realtime sync active ({len(self.tables)} tables)")

    async def stop(self) -> None:
        """구독 해제 → 대기 중 이벤트 처리 → 워커 종료"""
        self._stopping = True
        if self._supervisor is not None:
            self._supervisor.cancel()
            try:
                await self._supervisor
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Change feed supervisor had failed")
            self._supervisor = None

        if self._listener is not None:
            try:
                await self.source.close_listener(self._listener)
            except Exception as e:
                logger.warning(f"Closing listener failed: {e}")
            self._listener = None

        try:
            await asyncio.wait_for(self.wait_idle(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            pending = sum(q.qsize() for q in self._queues.values())
            logger.warning(f"Drain timeout, {pending} queued events dropped")
        await self._cancel_workers()
        logger.info("Realtime sync stopped")

    async def run_forever(self) -> None:
        """start() 후 취소될 때까지 대기 (독립 실행용)"""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def wait_idle(self) -> None:
        """현재 큐에 쌓인 이벤트가 모두 반영될 때까지 대기"""
        await asyncio.gather(*(q.join() for q in self._queues.values()))

    def enqueue(self, table: str, payload) -> None:
        """알림 페이로드 → ChangeEvent → 해당 테이블 큐 (잘못된 페이로드는 로그 후 폐기)"""
        queue = self._queues.get(table)
        if queue is None:
            logger.debug(f"[{table}] notification for unsubscribed table ignored")
            return
        try:
            event = ChangeEvent.from_notification(payload, table=table)
        except ValueError as e:
            logger.warning(f"[{table}] malformed change payload dropped: {e}")
            return
        logger.debug(f"[{table}] event {event.kind.value} queued")
        queue.put_nowait(event)

    # ── 내부 ──

    async def _worker(self, table: str, queue: asyncio.Queue) -> None:
        while True:
            event = await queue.get()
            try:
                await self.applier.apply_event(event)
            except Exception:
                logger.exception(f"[{table}] unexpected error applying {event.kind.value} event")
            finally:
                queue.task_done()

    async def _subscribe(self) -> None:
        self._lost = asyncio.Event()
        handlers = {channel_name(t): partial(self.enqueue, t) for t in self.tables}
        self._listener = await self.source.open_listener(handlers, on_lost=self._on_lost)
        for table in self.tables:
            logger.info(f"Subscribed to realtime updates for {table} (channel: {channel_name(table)})")

    def _on_lost(self, conn=None) -> None:
        if self._stopping:
            return
        if conn is not None and conn is not self._listener:
            logger.debug("Termination of a previous listener ignored")
            return
        logger.warning("Change feed connection lost")
        self._lost.set()

    async def _supervise(self) -> None:
        while not self._stopping:
            await self._lost.wait()
            if self._stopping:
                return
            await self._reconnect()

    async def _reconnect(self) -> None:
        if self._listener is not None:
            try:
                await self.source.close_listener(self._listener)
            except Exception as e:
                logger.debug(f"Closing lost listener failed: {e}")
            self._listener = None

        delay = self.backoff_initial
        while not self._stopping:
            await asyncio.sleep(delay)
            try:
                await self._subscribe()
            except Exception as e:
                delay = min(delay * 2, self.backoff_max)
                logger.error(f"Re-subscribe failed: {e} (retry in {delay:.1f}s)")
                continue
            self.reconnects += 1
            logger.warning(
                "Change feed re-subscribed; events emitted while disconnected are not replayed. "
                "Run the bulk sync job to reconcile."
            )
            return

    async def _cancel_workers(self) -> None:
        for task in self._workers.values():
            task.cancel()
        await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
