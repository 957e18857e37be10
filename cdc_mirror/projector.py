"""
Row Projector — 수신 행을 테이블 허용 컬럼으로 축소하고 SQL 조각을 만든다.

조각 빌더는 스키마 순서가 아니라 투영된 행의 키 순서를 따른다.
반드시 project() 후에 호출할 것.
"""
from typing import Any, Dict, Mapping, Optional

from cdc_mirror.encoder import quote_identifier, sql_value
from cdc_mirror.schema import TableDescriptor


def project(row: Optional[Mapping[str, Any]], descriptor: TableDescriptor) -> Dict[str, Any]:
    """행 → 허용 컬럼만 남긴 dict (키는 대문자, 원래 순서 유지).

    row 가 None 이면 빈 dict.
    """
    if not row:
        return {}
    allowed = descriptor.allowed
    projected = {}
    for key, value in row.items():
        column = str(key).upper()
        if column in allowed:
            projected[column] = value
    return projected


def column_list(row: Mapping[str, Any]) -> str:
    """쉼표로 연결한 대문자 인용 컬럼명"""
    return ", ".join(quote_identifier(c) for c in row)


def value_list(row: Mapping[str, Any]) -> str:
    """쉼표로 연결한 인코딩 값"""
    return ", ".join(sql_value(v) for v in row.values())


def assignment_list(row: Mapping[str, Any]) -> str:
    """쉼표로 연결한 '"COL" = 값' 쌍"""
    return ", ".join(f"{quote_identifier(c)} = {sql_value(v)}" for c, v in row.items())
