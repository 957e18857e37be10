"""
Change Applier — 변경 이벤트 1건을 대상 웨어하우스 SQL 로 반영

처리 순서:
1. 레지스트리 조회 (미지원 테이블 → no-op)
2. after / before 행을 각각 투영
3. raw_orders: DATE 만 있고 DAY 가 없으면 웨어하우스 측 요일 식 부여
4. insert / update / delete 분기 → SQL 생성 (필요 행 누락 시 skip)
5. 실행 — 실패는 로그만 남기고 전파하지 않음 (재시도 없음)
6. 파생 합계 재계산 (order_items → orders.TOTAL_AMOUNT) — 5 와 독립 실행/실패

5 와 6 은 원자적이지 않다. 중간 상태는 다음 이벤트 또는 벌크 동기화로 수렴한다.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from cdc_mirror.encoder import SqlExpression, quote_identifier, sql_value
from cdc_mirror.models import ChangeEvent, EventKind
from cdc_mirror.projector import assignment_list, column_list, project, value_list
from cdc_mirror.schema import (
    RAW_ORDERS_DATE_COLUMN,
    RAW_ORDERS_DAY_COLUMN,
    RAW_ORDERS_TABLE,
    DerivedTotal,
    TableDescriptor,
    lookup,
)

logger = logging.getLogger(__name__)


# ISO 요일 번호(1=월요일) → 전체 요일명. 대시보드와 같은 long 형식(대문자)으로 저장한다.
WEEKDAY_NAMES = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")


def day_of_week_expression(date_value: Any) -> SqlExpression:
    """일자 리터럴 → 웨어하우스에서 계산하는 전체 요일명 식.

    예: DECODE(DAYOFWEEKISO(TO_DATE('2025-01-03')), 1, 'MONDAY', ..., 7, 'SUNDAY') → 'FRIDAY'
    DAYNAME 은 약어(Fri)를 반환하므로 사용하지 않음
    """
    cases = ", ".join(f"{n}, {sql_value(name)}" for n, name in enumerate(WEEKDAY_NAMES, start=1))
    return SqlExpression(f"DECODE(DAYOFWEEKISO(TO_DATE({sql_value(date_value)})), {cases})")


def with_day_of_week(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """raw_orders 행에 DATE 는 있고 DAY 가 비어 있으면 DAY 를 요일 식으로 채운다."""
    if table.lower() != RAW_ORDERS_TABLE or not row:
        return row
    date_value = row.get(RAW_ORDERS_DATE_COLUMN)
    if date_value in (None, ""):
        return row
    if row.get(RAW_ORDERS_DAY_COLUMN) not in (None, ""):
        return row
    enriched = dict(row)
    enriched[RAW_ORDERS_DAY_COLUMN] = day_of_week_expression(date_value)
    return enriched


def build_statement(
    kind: EventKind,
    descriptor: TableDescriptor,
    after: Mapping[str, Any],
    before: Mapping[str, Any],
) -> Optional[str]:
    """투영된 행으로 INSERT / UPDATE / DELETE 문 생성. 필요한 행이 없으면 None."""
    table = quote_identifier(descriptor.name)
    pk = descriptor.primary_key

    if kind == EventKind.INSERT:
        if not after:
            return None
        return f"INSERT INTO {table} ({column_list(after)}) VALUES ({value_list(after)})"

    if kind == EventKind.UPDATE:
        if not after or not before or before.get(pk) is None:
            return None
        return (
            f"UPDATE {table} SET {assignment_list(after)} "
            f"WHERE {quote_identifier(pk)} = {sql_value(before[pk])}"
        )

    if kind == EventKind.DELETE:
        if not before or before.get(pk) is None:
            return None
        return f"DELETE FROM {table} WHERE {quote_identifier(pk)} = {sql_value(before[pk])}"

    return None


def build_total_recompute(derived: DerivedTotal, child_table: str, parent_id: Any) -> str:
    """부모 합계 = 현재 자식 값 합계 (없으면 0)"""
    fk = quote_identifier(derived.foreign_key)
    parent_id_sql = sql_value(parent_id)
    return (
        f"UPDATE {quote_identifier(derived.parent_table)} "
        f"SET {quote_identifier(derived.total_column)} = ("
        f"SELECT COALESCE(SUM({quote_identifier(derived.value_column)}), 0) "
        f"FROM {quote_identifier(child_table)} WHERE {fk} = {parent_id_sql}) "
        f"WHERE {quote_identifier(derived.parent_key)} = {parent_id_sql}"
    )


def affected_parent_ids(derived: DerivedTotal, after: Mapping[str, Any], before: Mapping[str, Any]) -> List[Any]:
    """재계산할 부모 id 목록 — after 의 FK 우선, 없으면 before.

    update 로 자식이 다른 부모로 옮겨진 경우 이전 부모도 포함한다.
    """
    ids = []
    for row in (after, before):
        parent_id = row.get(derived.foreign_key)
        if parent_id is not None and parent_id not in ids:
            ids.append(parent_id)
    return ids


class ChangeApplier:
    """변경 이벤트 → 대상 웨어하우스 반영.

    Attributes:
        warehouse: execute(sql) 코루틴을 가진 대상 클라이언트 (WarehouseClient)
        registry: 테이블 레지스트리 (기본 schema.TABLES)
    """

    def __init__(self, warehouse, registry: Optional[Dict[str, TableDescriptor]] = None):
        self.warehouse = warehouse
        self.registry = registry

    async def apply_event(self, event: ChangeEvent) -> bool:
        return await self.apply(event.kind, event.table, event.after, event.before)

    async def apply(
        self,
        kind: EventKind,
        table: str,
        after: Optional[Mapping[str, Any]] = None,
        before: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """이벤트 1건 반영.

        Returns:
            미러 쓰기 실패 시 False, 그 외(성공, skip, 미지원 테이블) True.
            파생 합계 재계산 실패는 반환값에 영향을 주지 않는다.
        """
        parsed = EventKind.parse(kind)
        if parsed is None:
            logger.warning(f"[{table}] unknown event kind {kind!r}, ignored")
            return True
        kind = parsed

        descriptor = lookup(table, self.registry)
        if descriptor is None:
            logger.debug(f"[{table}] unsupported table, {kind.value} event ignored")
            return True

        projected_after = with_day_of_week(descriptor.name, project(after, descriptor))
        projected_before = project(before, descriptor)

        ok = True
        sql = build_statement(kind, descriptor, projected_after, projected_before)
        if sql is None:
            logger.debug(f"[{descriptor.name}] incomplete {kind.value} payload, skipped")
        else:
            ok = await self._execute(sql, descriptor.name, kind.value)
            if ok:
                logger.info(f"[{descriptor.name}] mirrored {kind.value}")

        for derived in descriptor.derived:
            await self._recompute_total(derived, descriptor.name, projected_after, projected_before)

        return ok

    async def _recompute_total(
        self,
        derived: DerivedTotal,
        child_table: str,
        after: Mapping[str, Any],
        before: Mapping[str, Any],
    ) -> None:
        for parent_id in affected_parent_ids(derived, after, before):
            sql = build_total_recompute(derived, child_table, parent_id)
            if await self._execute(sql, derived.parent_table, "total-recompute"):
                logger.info(
                    f"[{derived.parent_table}] recomputed {derived.total_column} for {derived.parent_key}={parent_id}"
                )

    async def _execute(self, sql: str, table: str, context: str) -> bool:
        try:
            await self.warehouse.execute(sql)
            return True
        except Exception as e:
            logger.error(f"[{table}] {context} failed: {e} | SQL: {sql[:200]}")
            return False
