"""
대상 웨어하우스(Snowflake) 클라이언트

단일 연결 핸들을 명시적으로 생성/해제하며 applier, subscriber, bulk job 이 공유한다.
snowflake-connector-python 은 동기 드라이버이므로 asyncio.to_thread 에서 실행한다.
"""
import asyncio
import logging
from typing import Any, List, Optional

import snowflake.connector

from cdc_mirror.config import settings
from cdc_mirror.exceptions import NotConnectedError, WarehouseError

logger = logging.getLogger(__name__)


class WarehouseClient:
    """Snowflake 연결 래퍼.

    사용법::

        warehouse = WarehouseClient()
        await warehouse.connect()
        try:
            await warehouse.execute('SELECT 1')
        finally:
            await warehouse.close()
    """

    def __init__(self, connect_kwargs: Optional[dict] = None):
        self.connect_kwargs = connect_kwargs if connect_kwargs is not None else settings.SNOWFLAKE_CONFIG
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """연결 핸드셰이크 (이미 연결되어 있으면 무시)"""
        if self._conn is not None:
            return
        try:
            self._conn = await asyncio.to_thread(
                snowflake.connector.connect, **self.connect_kwargs
            )
        except snowflake.connector.errors.Error as e:
            raise WarehouseError(f"Snowflake connection failed: {e}") from e
        logger.info(
            "Connected to Snowflake (account=%s, database=%s, schema=%s)",
            self.connect_kwargs.get("account"),
            self.connect_kwargs.get("database"),
            self.connect_kwargs.get("schema"),
        )

    async def execute(self, sql: str) -> List[Any]:
        """SQL 텍스트 실행 → 결과 행 목록 (DDL/DML 은 빈 목록 또는 드라이버 결과)

        Raises:
            NotConnectedError: connect() 전 호출
            WarehouseError: 문장 거부
        """
        if self._conn is None:
            raise NotConnectedError("WarehouseClient.connect() has not been called")
        try:
            return await asyncio.to_thread(self._execute_sync, sql)
        except snowflake.connector.errors.Error as e:
            raise WarehouseError(str(e), sql=sql) from e

    def _execute_sync(self, sql: str) -> List[Any]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql)
            if cursor.description is None:
                return []
            return cursor.fetchall()
        finally:
            cursor.close()

    async def close(self) -> None:
        """연결 해제 (lifespan shutdown / 배치 종료 시)"""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await asyncio.to_thread(conn.close)
        except snowflake.connector.errors.Error as e:
            logger.warning(f"Snowflake close failed: {e}")
        logger.info("Snowflake connection closed")
