"""
POS DB → Snowflake CDC Mirror

소스 PostgreSQL 의 행 단위 변경(insert/update/delete)을 Snowflake 웨어하우스로
준실시간 복제하고, 전량 재동기화 배치 작업을 함께 제공합니다.
"""

__version__ = "0.1.0"

from cdc_mirror.encoder import SqlExpression, quote_identifier, sql_value
from cdc_mirror.schema import SYNC_ORDER, TABLES, DerivedTotal, TableDescriptor, lookup
from cdc_mirror.projector import assignment_list, column_list, project, value_list
from cdc_mirror.models import ChangeEvent, EventKind
from cdc_mirror.applier import ChangeApplier

__all__ = [
    "SqlExpression",
    "quote_identifier",
    "sql_value",
    "SYNC_ORDER",
    "TABLES",
    "DerivedTotal",
    "TableDescriptor",
    "lookup",
    "project",
    "column_list",
    "value_list",
    "assignment_list",
    "ChangeEvent",
    "EventKind",
    "ChangeApplier",
]
