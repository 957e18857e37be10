#!/usr/bin/env python3
"""
Bulk Sync Job — 소스 전체 테이블을 웨어하우스로 전량 미러링 (콜드 스타트 / 백필 / 정합성 복구)

테이블별 (SYNC_ORDER 순, 순차 실행):
1. 소스 전체를 BULK_FETCH_SIZE 단위로 페이지 조회 (행 수 상한 없음)
2. 행이 있으면 CREATE TABLE IF NOT EXISTS (정적 스키마 우선, 없는 컬럼만 값으로 추론)
3. TRUNCATE TABLE IF EXISTS (항상)
4. BULK_INSERT_SIZE 단위 다중 행 INSERT

어느 테이블에서든 실패하면 작업 전체 중단 (이후 테이블 미동기화).
truncate → reload 이므로 재실행은 멱등이다. 복구 = 재실행.

사용법:
    cdc-bulk-sync
    cdc-bulk-sync --tables orders order_items --insert-size 200
"""
import argparse
import asyncio
import datetime
import logging
import sys
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from cdc_mirror.config import settings
from cdc_mirror.encoder import quote_identifier, sql_value
from cdc_mirror.projector import project
from cdc_mirror.schema import SYNC_ORDER, TableDescriptor, lookup

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_TYPE = "STRING"


def infer_column_type(value: Any) -> Optional[str]:
    """런타임 값 → 웨어하우스 컬럼 타입. None 이면 판단 불가(None)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "BOOLEAN"
    if isinstance(value, (int, float, Decimal)):
        return "FLOAT"
    if isinstance(value, (datetime.datetime, datetime.date)):
        return "TIMESTAMP"
    return DEFAULT_COLUMN_TYPE


def resolve_column_types(descriptor: TableDescriptor, rows: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """컬럼별 대상 타입. 정적 스키마 우선, 없으면 첫 non-null 값으로 추론, 그래도 없으면 STRING."""
    types = {}
    for column in descriptor.columns:
        column_type = descriptor.column_type(column)
        if column_type is None:
            for row in rows:
                column_type = infer_column_type(row.get(column))
                if column_type is not None:
                    break
        types[column] = column_type or DEFAULT_COLUMN_TYPE
    return types


def create_table_sql(descriptor: TableDescriptor, column_types: Dict[str, str]) -> str:
    defs = ", ".join(f"{quote_identifier(c)} {t}" for c, t in column_types.items())
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(descriptor.name)} ({defs})"


def truncate_table_sql(descriptor: TableDescriptor) -> str:
    return f"TRUNCATE TABLE IF EXISTS {quote_identifier(descriptor.name)}"


def insert_batch_sql(descriptor: TableDescriptor, columns: Sequence[str], rows: Iterable[Dict[str, Any]]) -> str:
    """다중 행 INSERT — 모든 셀은 sql_value 로 인코딩"""
    values = ",\n".join(
        "(" + ", ".join(sql_value(row.get(c)) for c in columns) + ")"
        for row in rows
    )
    column_sql = ", ".join(quote_identifier(c) for c in columns)
    return f"INSERT INTO {quote_identifier(descriptor.name)} ({column_sql}) VALUES {values}"


def chunked(rows: Sequence[Dict[str, Any]], size: int) -> Iterator[Sequence[Dict[str, Any]]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


def dependency_ordered(tables: Iterable[str]) -> List[str]:
    """지정 테이블을 SYNC_ORDER 순으로 정렬 (목록에 없는 테이블은 뒤에 입력 순서대로)"""
    names = []
    for t in tables:
        if t.lower() not in names:
            names.append(t.lower())
    rank = {name: i for i, name in enumerate(SYNC_ORDER)}
    return sorted(names, key=lambda n: rank.get(n, len(rank)))


class BulkSyncJob:
    """전체 재동기화 배치 작업.

    source / warehouse 는 호출 측에서 생성·연결·해제한다 (run_job 참고).
    """

    def __init__(
        self,
        source,
        warehouse,
        tables: Optional[Iterable[str]] = None,
        fetch_size: Optional[int] = None,
        insert_size: Optional[int] = None,
        registry: Optional[Dict[str, TableDescriptor]] = None,
    ):
        self.source = source
        self.warehouse = warehouse
        self.tables = dependency_ordered(tables) if tables is not None else list(SYNC_ORDER)
        self.fetch_size = fetch_size or settings.BULK_FETCH_SIZE
        self.insert_size = insert_size or settings.BULK_INSERT_SIZE
        self.registry = registry

    async def run(self) -> Dict[str, int]:
        """모든 테이블 순차 동기화.

        Returns:
            {테이블명: 적재 행 수}

        Raises:
            어떤 테이블에서든 발생한 예외 (이후 테이블은 처리하지 않음)
        """
        summary: Dict[str, int] = {}
        logger.info(f"Syncing {len(self.tables)} tables...")
        for table in self.tables:
            descriptor = lookup(table, self.registry)
            if descriptor is None:
                logger.warning(f"[{table}] not in registry, skipped")
                continue
            try:
                summary[descriptor.name] = await self.sync_table(descriptor)
            except Exception:
                remaining = self.tables[self.tables.index(table) + 1:]
                logger.exception(
                    f"Error during sync of {descriptor.name}; aborting "
                    f"({len(remaining)} tables not synced: {', '.join(remaining) or '-'})"
                )
                raise
        logger.info(f"All {len(summary)} tables successfully mirrored")
        return summary

    async def sync_table(self, descriptor: TableDescriptor) -> int:
        """단일 테이블 fetch → create → truncate → insert. 적재 행 수 반환."""
        logger.info(f"[{descriptor.name}] fetching from source")
        rows = await self.source.fetch_all(descriptor.name, descriptor.primary_key, self.fetch_size)
        projected = [p for p in (project(r, descriptor) for r in rows) if p]

        if projected:
            column_types = resolve_column_types(descriptor, projected)
            await self.warehouse.execute(create_table_sql(descriptor, column_types))
            logger.info(f"[{descriptor.name}] ensured table exists")

        await self.warehouse.execute(truncate_table_sql(descriptor))

        if not projected:
            logger.info(f"[{descriptor.name}] no data to insert")
            return 0

        columns = [c for c in descriptor.columns if c in projected[0]]
        logger.info(
            f"[{descriptor.name}] inserting {len(projected)} rows in batches of {self.insert_size}"
        )
        for batch in chunked(projected, self.insert_size):
            await self.warehouse.execute(insert_batch_sql(descriptor, columns, batch))
        logger.info(f"[{descriptor.name}] finished inserting {len(projected)} rows")
        return len(projected)


async def run_job(
    tables: Optional[List[str]] = None,
    fetch_size: Optional[int] = None,
    insert_size: Optional[int] = None,
    source=None,
    warehouse=None,
) -> Dict[str, int]:
    """클라이언트 생성/연결 → 작업 실행 → 해제 (실패해도 연결은 반드시 해제)"""
    from cdc_mirror.source import SourceClient
    from cdc_mirror.warehouse import WarehouseClient

    source = source or SourceClient()
    warehouse = warehouse or WarehouseClient()
    try:
        await warehouse.connect()
        await source.connect()
        job = BulkSyncJob(source, warehouse, tables=tables, fetch_size=fetch_size, insert_size=insert_size)
        return await job.run()
    finally:
        await source.close()
        await warehouse.close()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Source DB → Snowflake full bulk sync")
    parser.add_argument("--tables", nargs="+", help="Tables to sync (default: all, dependency order)")
    parser.add_argument("--fetch-size", type=int, default=settings.BULK_FETCH_SIZE, help="Source page size")
    parser.add_argument("--insert-size", type=int, default=settings.BULK_INSERT_SIZE, help="Rows per INSERT")
    args = parser.parse_args(argv)

    try:
        summary = asyncio.run(run_job(args.tables, args.fetch_size, args.insert_size))
    except Exception as e:
        logger.error(f"Bulk sync aborted: {e}")
        return 1

    print(f"\n{'='*60}")
    print("Bulk Sync Complete")
    for table, count in summary.items():
        print(f"  {table}: {count:,} rows")
    print(f"{'='*60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
