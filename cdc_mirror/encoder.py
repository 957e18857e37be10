"""
SQL 값 인코더

복제된 임의의 필드 값을 대상 SQL 문에 그대로 삽입 가능한 리터럴로 변환한다.
복제 데이터와 SQL 텍스트 사이의 유일한 경계이므로 모든 리터럴은
반드시 sql_value()를 거쳐야 한다.
"""
import math
from decimal import Decimal


class SqlExpression(str):
    """미러 내부에서 생성한 SQL 식 (인용 없이 그대로 출력).

    복제 데이터로부터 직접 만들지 않는다. 식 안의 리터럴은
    sql_value()로 먼저 인코딩해야 한다.
    """

    def __repr__(self) -> str:
        return f"SqlExpression({str.__repr__(self)})"


def sql_value(value) -> str:
    """값 → SQL 리터럴.

    - None → NULL
    - bool → TRUE / FALSE
    - int / float / Decimal → 따옴표 없는 숫자 (NaN, inf 는 NULL)
    - SqlExpression → 그대로
    - 그 외 → str() 후 작은따옴표 이중화, 작은따옴표로 감쌈

    예외를 발생시키지 않는다.
    """
    if value is None:
        return "NULL"
    # bool 은 int 의 하위 클래스라 숫자보다 먼저 검사
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and not math.isfinite(value):
            return "NULL"
        if isinstance(value, Decimal) and not value.is_finite():
            return "NULL"
        return str(value)
    if isinstance(value, SqlExpression):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """식별자 → 대문자 큰따옴표 식별자 (예: order_items → "ORDER_ITEMS")"""
    return '"' + str(name).upper().replace('"', '""') + '"'
