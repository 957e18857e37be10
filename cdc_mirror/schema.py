"""
미러 대상 테이블 레지스트리

논리 테이블명 → 허용 컬럼, PK, 컬럼 타입(정적 스키마), 파생 집계 트리거.
레지스트리에 없는 테이블은 미지원(조용히 무시)으로 취급한다.

SYNC_ORDER: 벌크 동기화 순서 (참조되는 부모 테이블이 먼저).
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class DerivedTotal:
    """자식 테이블 변경 시 재계산하는 부모 테이블의 비정규화 합계.

    Attributes:
        parent_table: 합계를 보관하는 부모 테이블 (예: orders)
        parent_key: 부모 PK 컬럼 (예: ID)
        total_column: 부모의 합계 컬럼 (예: TOTAL_AMOUNT)
        foreign_key: 자식의 부모 참조 컬럼 (예: ORDER_ID)
        value_column: 자식에서 합산할 컬럼 (예: SUBTOTAL)
    """
    parent_table: str
    parent_key: str
    total_column: str
    foreign_key: str
    value_column: str


@dataclass(frozen=True)
class TableDescriptor:
    """미러 테이블 정의 (프로세스 시작 시 1회 로드, 불변).

    columns 와 primary_key 는 대문자로 정규화되어 저장된다.
    column_types 에 없는(None) 컬럼은 벌크 동기화 시 값으로 타입을 추론한다.
    """
    name: str
    columns: Tuple[str, ...]
    primary_key: str = "ID"
    column_types: Dict[str, Optional[str]] = field(default_factory=dict)
    derived: Tuple[DerivedTotal, ...] = ()

    def __post_init__(self):
        columns = tuple(c.upper() for c in self.columns)
        pk = self.primary_key.upper()
        object.__setattr__(self, "name", self.name.lower())
        object.__setattr__(self, "columns", columns)
        object.__setattr__(self, "primary_key", pk)
        object.__setattr__(
            self, "column_types", {k.upper(): v for k, v in self.column_types.items()}
        )
        if pk not in columns:
            raise ValueError(f"primary key {pk} is not an allowed column of {self.name}")

    @property
    def allowed(self) -> frozenset:
        return frozenset(self.columns)

    def column_type(self, column: str) -> Optional[str]:
        return self.column_types.get(column.upper())


def _table(name: str, pk: str = "ID", derived: Tuple[DerivedTotal, ...] = (), **columns) -> TableDescriptor:
    """컬럼명=타입 키워드 인자로 TableDescriptor 생성 (선언 순서 유지)"""
    return TableDescriptor(
        name=name,
        columns=tuple(columns),
        primary_key=pk,
        column_types=dict(columns),
        derived=derived,
    )


ORDER_TOTAL = DerivedTotal(
    parent_table="orders",
    parent_key="ID",
    total_column="TOTAL_AMOUNT",
    foreign_key="ORDER_ID",
    value_column="SUBTOTAL",
)

# 일자 → 요일 파생 대상 (raw_orders)
RAW_ORDERS_TABLE = "raw_orders"
RAW_ORDERS_DATE_COLUMN = "DATE"
RAW_ORDERS_DAY_COLUMN = "DAY"


TABLES: Dict[str, TableDescriptor] = {
    t.name: t
    for t in (
        # 레거시 수기 입력 주문 원장
        _table(
            "raw_orders", pk="RAW_ORDER_ID",
            RAW_ORDER_ID="NUMBER", NAME="STRING", TIME="STRING", DATE="DATE",
            DAY="STRING", ITEM="STRING", ITEM_SIZE="STRING", ORDER_TYPE="STRING",
            QUANTITY="FLOAT", ADDRESS="STRING", MEDIUM_Y="STRING", MOP_Y="STRING",
        ),
        # 원천 메뉴/영수증 덤프: 타입 미확정, 벌크 동기화 시 추론
        _table(
            "raw_menu",
            ID="NUMBER", ITEM=None, ITEM_SIZE=None, CATEGORY=None, PRICE=None,
        ),
        _table(
            "raw_receipt",
            ID="NUMBER", DATE=None, RECEIPT_NO=None, TOTAL=None,
        ),
        _table(
            "customers",
            ID="NUMBER", NAME="STRING", UNIT="STRING", STREET="STRING", BARANGAY="STRING",
            CITY="STRING", PAYMENT_MODE="STRING", ORDER_MODE="STRING",
        ),
        _table("category", ID="NUMBER", NAME="STRING"),
        _table("category_sizes", ID="NUMBER", CATEGORY_ID="NUMBER", SIZE="STRING"),
        _table("menu_items", ID="NUMBER", NAME="STRING", CATEGORY_ID="NUMBER"),
        _table(
            "menu_item_variants",
            ID="NUMBER", MENU_ITEM_ID="NUMBER", SIZE_ID="NUMBER", PRICE="FLOAT",
        ),
        _table("medium", ID="NUMBER", NAME="STRING"),
        _table("mop", ID="NUMBER", NAME="STRING", IS_COMBO="BOOLEAN"),
        _table("mop_items", ID="NUMBER", MOP_ID="NUMBER", ITEM_ID="NUMBER"),
        _table(
            "orders",
            ID="NUMBER", CUSTOMER_ID="NUMBER", ORDER_DATE="DATE", ORDER_TIME="STRING",
            ORDER_MODE="STRING", MOP_ID="NUMBER", MEDIUM_ID="NUMBER", TOTAL_AMOUNT="FLOAT",
            ARCHIVED="BOOLEAN", CREATED_AT="TIMESTAMP",
        ),
        _table(
            "order_items", derived=(ORDER_TOTAL,),
            ID="NUMBER", ORDER_ID="NUMBER", VARIANT_ID="NUMBER", QUANTITY="FLOAT",
            SUBTOTAL="FLOAT", NAME="STRING", SIZE="STRING", CATEGORY="STRING", QTY="FLOAT",
            PRICE="FLOAT",
        ),
        _table(
            "receipt_totals",
            ID="NUMBER", ORDER_ID="NUMBER", RECEIPT_DATE="DATE", RECEIPT_TOTAL="FLOAT",
        ),
        _table("packed_meals", ID="NUMBER", NAME="STRING"),
        _table(
            "packed_meal_items",
            ID="NUMBER", PACKED_MEAL_ID="NUMBER", MENU_ITEM_ID="NUMBER",
        ),
    )
}

SYNC_ORDER: Tuple[str, ...] = (
    "raw_orders",
    "raw_menu",
    "raw_receipt",
    "customers",
    "category",
    "category_sizes",
    "menu_items",
    "menu_item_variants",
    "medium",
    "mop",
    "mop_items",
    "orders",
    "order_items",
    "receipt_totals",
    "packed_meals",
    "packed_meal_items",
)


def lookup(table_name: str, registry: Optional[Dict[str, TableDescriptor]] = None) -> Optional[TableDescriptor]:
    """테이블명(대소문자 무시)으로 TableDescriptor 조회. 없으면 None."""
    if not table_name:
        return None
    registry = TABLES if registry is None else registry
    return registry.get(table_name.lower())
