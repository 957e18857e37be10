"""
소스 DB(PostgreSQL) 클라이언트

- 벌크 조회: PK 순 페이지 단위 전체 스캔 (+ COUNT(*) 힌트)
- 변경 피드: 행 트리거 → pg_notify('cdc_<table>', json) → LISTEN
"""
import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import asyncpg

from cdc_mirror.config import settings
from cdc_mirror.exceptions import NotConnectedError, SourceError

logger = logging.getLogger(__name__)

# 트리거/채널 이름에 그대로 들어가므로 소문자 식별자만 허용
_TABLE_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

CHANNEL_PREFIX = "cdc_"

# 구독 연결 수립 중 발생 가능한 드라이버 오류 (중간 끊김 InterfaceError, 연결 타임아웃 포함)
_LISTENER_ERRORS = (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)


def channel_name(table: str) -> str:
    """테이블별 변경 피드 채널명 (예: orders → cdc_orders)"""
    return f"{CHANNEL_PREFIX}{table.lower()}"


def _check_table(table: str) -> str:
    name = table.lower()
    if not _TABLE_NAME_RE.match(name):
        raise ValueError(f"invalid source table name: {table!r}")
    return name


def _pg_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SourceClient:
    """asyncpg 연결 풀 기반 소스 DB 클라이언트.

    Attributes:
        dsn: PostgreSQL 연결 문자열
        schema: 소스 스키마 (기본 public)
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        schema: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        self.dsn = dsn or settings.SOURCE_DSN
        self.schema = schema or settings.SOURCE_DB_SCHEMA
        self.min_size = min_size if min_size is not None else settings.SOURCE_POOL_MIN
        self.max_size = max_size if max_size is not None else settings.SOURCE_POOL_MAX
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """연결 풀 생성 (이미 있으면 무시)"""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise SourceError(f"source connection failed: {e}") from e
        logger.info(f"Source DB pool created (min={self.min_size}, max={self.max_size})")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Source DB pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise NotConnectedError("SourceClient.connect() has not been called")
        return self._pool

    def _qualified(self, table: str) -> str:
        return f"{_pg_ident(self.schema)}.{_pg_ident(_check_table(table))}"

    # ── 벌크 조회 ──

    async def count_rows(self, table: str) -> Optional[int]:
        """전체 행 수 힌트. 조회 실패 시 None (진행 로그용일 뿐)"""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(f"SELECT COUNT(*) FROM {self._qualified(table)}")
        except asyncpg.PostgresError as e:
            logger.warning(f"Row count hint unavailable for {table}: {e}")
            return None

    async def fetch_page(self, table: str, order_by: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        """PK 순 한 페이지 조회"""
        pool = self._require_pool()
        sql = (
            f"SELECT * FROM {self._qualified(table)} "
            f"ORDER BY {_pg_ident(order_by.lower())} LIMIT $1 OFFSET $2"
        )
        async with pool.acquire() as conn:
            rows = await conn.fetch(sql, limit, offset)
        return [dict(r) for r in rows]

    async def fetch_all(self, table: str, order_by: str, page_size: int = 1000) -> List[Dict[str, Any]]:
        """전체 테이블을 page_size 단위로 끝까지 조회 (행 수 상한 없음).

        짧은 페이지(또는 빈 페이지)가 나오면 종료한다.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        total = await self.count_rows(table)
        all_rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = await self.fetch_page(table, order_by, page_size, offset)
            if not page:
                break
            all_rows.extend(page)
            logger.info(f"Fetched {len(all_rows)}/{total if total is not None else '?'} rows from {table}")
            if len(page) < page_size:
                break
            offset += page_size
        return all_rows

    # ── 변경 피드 ──

    async def install_capture_trigger(self, table: str) -> None:
        """행 단위 변경 알림 트리거 설치 (재실행 안전).

        INSERT/UPDATE/DELETE 마다 pg_notify('cdc_<table>', {op, table, new, old}) 발행.
        """
        name = _check_table(table)
        pool = self._require_pool()
        qualified = self._qualified(name)
        function = f"{_pg_ident(self.schema)}.cdc_mirror_notify_{name}"
        async with pool.acquire() as conn:
            await conn.execute(f"""
                CREATE OR REPLACE FUNCTION {function}()
                RETURNS TRIGGER AS $$
                BEGIN
                    PERFORM pg_notify('{channel_name(name)}', json_build_object(
                        'op', TG_OP,
                        'table', TG_TABLE_NAME,
                        'new', CASE WHEN TG_OP IN ('INSERT','UPDATE') THEN row_to_json(NEW) ELSE NULL END,
                        'old', CASE WHEN TG_OP IN ('UPDATE','DELETE') THEN row_to_json(OLD) ELSE NULL END
                    )::text);
                    RETURN CASE WHEN TG_OP = 'DELETE' THEN OLD ELSE NEW END;
                END;
                $$ LANGUAGE plpgsql;

                DROP TRIGGER IF EXISTS cdc_mirror_{name} ON {qualified};
                CREATE TRIGGER cdc_mirror_{name}
                    AFTER INSERT OR UPDATE OR DELETE ON {qualified}
                    FOR EACH ROW EXECUTE FUNCTION {function}();
            """)
        logger.info(f"Capture trigger installed on {self.schema}.{name}")

    async def open_listener(
        self,
        handlers: Dict[str, Callable[[str], None]],
        on_lost: Optional[Callable[[asyncpg.Connection], None]] = None,
    ) -> asyncpg.Connection:
        """전용 연결에서 채널별 LISTEN 시작.

        Args:
            handlers: {채널명: payload 콜백}
            on_lost: 연결 종료 시 종료된 연결을 인자로 호출 (재연결 트리거용)

        Returns:
            LISTEN 중인 asyncpg.Connection (close_listener 로 해제)

        Raises:
            SourceError: 연결 또는 LISTEN 실패 (드라이버/타임아웃 오류 포함)
        """
        try:
            conn = await asyncpg.connect(self.dsn)
        except _LISTENER_ERRORS as e:
            raise SourceError(f"listener connection failed: {e}") from e

        try:
            for channel, handler in handlers.items():
                await conn.add_listener(channel, _payload_adapter(handler))
        except _LISTENER_ERRORS as e:
            # 반쯤 열린 연결 정리
            conn.terminate()
            raise SourceError(f"LISTEN failed: {e}") from e

        if on_lost is not None:
            conn.add_termination_listener(on_lost)
        return conn

    async def close_listener(self, conn: asyncpg.Connection) -> None:
        if conn is not None and not conn.is_closed():
            await conn.close()


def _payload_adapter(handler: Callable[[str], None]):
    """asyncpg 콜백 시그니처 (conn, pid, channel, payload) → handler(payload)"""
    def _on_notify(_conn, _pid, _channel, payload):
        handler(payload)
    return _on_notify
