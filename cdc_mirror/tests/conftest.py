"""
테스트 공유 fixtures — 웨어하우스/소스 fake + lifespan 우회 앱
"""
import re
import sqlite3
from typing import Any, Dict, List, Optional

import httpx
import pytest

from cdc_mirror.bulk_sync import create_table_sql
from cdc_mirror.encoder import quote_identifier
from cdc_mirror.exceptions import WarehouseError
from cdc_mirror.schema import TABLES

_TRUNCATE_RE = re.compile(r'^TRUNCATE TABLE IF EXISTS "([^"]+)"$')


# ── 웨어하우스 fake ──────────────────────────────────────────────────────────

class SqliteWarehouse:
    """생성된 SQL 을 인메모리 sqlite 에서 실제로 실행하는 웨어하우스 대역.

    sqlite 에 없는 TRUNCATE TABLE IF EXISTS 만 DELETE 로 바꿔 실행한다.
    fail_on 에 포함된 문자열이 있는 문장은 WarehouseError 로 거부한다.
    """

    def __init__(self):
        self.conn = sqlite3.connect(":memory:")
        self.conn.row_factory = sqlite3.Row
        self.statements: List[str] = []
        self.fail_on: List[str] = []

    async def execute(self, sql: str) -> List[Any]:
        self.statements.append(sql)
        if any(marker in sql for marker in self.fail_on):
            raise WarehouseError("statement rejected", sql=sql)

        m = _TRUNCATE_RE.match(sql)
        if m:
            if not self.has_table(m.group(1)):
                return []
            sql = f'DELETE FROM "{m.group(1)}"'
        try:
            rows = self.conn.execute(sql).fetchall()
        except sqlite3.Error as e:
            raise WarehouseError(str(e), sql=sql) from e
        self.conn.commit()
        return rows

    def has_table(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name.upper(),)
        ).fetchone()
        return row is not None

    def create(self, table: str) -> None:
        descriptor = TABLES[table]
        types = {c: descriptor.column_type(c) or "STRING" for c in descriptor.columns}
        self.conn.execute(create_table_sql(descriptor, types))

    def rows(self, table: str, *columns: str) -> List[Dict[str, Any]]:
        """PK 순 전체 행 (columns 를 주면 해당 컬럼만)"""
        select = ", ".join(quote_identifier(c) for c in columns) if columns else "*"
        pk = quote_identifier(TABLES[table].primary_key)
        cursor = self.conn.execute(f"SELECT {select} FROM {quote_identifier(table)} ORDER BY {pk}")
        return [dict(r) for r in cursor.fetchall()]


class RecordingWarehouse:
    """문장만 기록하는 웨어하우스 대역 (sqlite 로 실행할 수 없는 식 검증용)"""

    def __init__(self, fail_on: Optional[List[str]] = None):
        self.statements: List[str] = []
        self.fail_on = fail_on or []

    async def execute(self, sql: str) -> List[Any]:
        self.statements.append(sql)
        if any(marker in sql for marker in self.fail_on):
            raise WarehouseError("statement rejected", sql=sql)
        return []


# ── 소스 fake ────────────────────────────────────────────────────────────────

class FakeSource:
    """테이블별 행을 메모리에 들고 있는 소스 대역 (fetch_all 만 구현)"""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.fetch_calls: List[tuple] = []

    async def fetch_all(self, table: str, order_by: str, page_size: int = 1000) -> List[Dict[str, Any]]:
        self.fetch_calls.append((table, order_by, page_size))
        rows = self.tables.get(table, [])
        return sorted(rows, key=lambda r: r[order_by.lower()])


@pytest.fixture()
def sqlite_warehouse():
    wh = SqliteWarehouse()
    yield wh
    wh.conn.close()


@pytest.fixture()
def recording_warehouse():
    return RecordingWarehouse()


@pytest.fixture()
def fake_source():
    return FakeSource()


# ── FastAPI TestApp (lifespan 우회) ──────────────────────────────────────────

@pytest.fixture()
def app():
    """미러 lifespan 없이 라이브니스만 제공하는 앱"""
    from cdc_mirror.server import create_app
    return create_app(with_mirror=False)


@pytest.fixture()
async def client(app):
    """httpx AsyncClient — ASGI transport로 직접 연결"""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as ac:
        yield ac
