"""
테이블 레지스트리 테스트
"""
import pytest

from cdc_mirror.schema import SYNC_ORDER, TABLES, TableDescriptor, lookup


class TestRegistry:
    """TABLES / SYNC_ORDER"""

    def test_sync_order_covers_registry(self):
        assert set(SYNC_ORDER) == set(TABLES)
        assert len(SYNC_ORDER) == len(TABLES)

    def test_parents_before_children(self):
        rank = {name: i for i, name in enumerate(SYNC_ORDER)}
        assert rank["orders"] < rank["order_items"]
        assert rank["menu_items"] < rank["menu_item_variants"]
        assert rank["category"] < rank["category_sizes"]
        assert rank["packed_meals"] < rank["packed_meal_items"]
        assert rank["mop"] < rank["mop_items"]

    def test_primary_key_is_allowed_column(self):
        for descriptor in TABLES.values():
            assert descriptor.primary_key in descriptor.allowed

    def test_raw_orders_key(self):
        assert TABLES["raw_orders"].primary_key == "RAW_ORDER_ID"

    def test_order_items_carries_derived_total(self):
        derived = TABLES["order_items"].derived
        assert len(derived) == 1
        assert derived[0].parent_table == "orders"
        assert derived[0].total_column == "TOTAL_AMOUNT"
        assert derived[0].foreign_key == "ORDER_ID"
        assert derived[0].value_column == "SUBTOTAL"

    def test_only_order_items_has_derived(self):
        assert [t for t, d in TABLES.items() if d.derived] == ["order_items"]


class TestLookup:
    """lookup — 대소문자 무시 조회"""

    def test_known_table(self):
        assert lookup("orders") is TABLES["orders"]

    def test_case_insensitive(self):
        assert lookup("ORDER_ITEMS") is TABLES["order_items"]

    def test_unknown_table(self):
        assert lookup("audit_log") is None

    def test_empty_name(self):
        assert lookup("") is None

    def test_custom_registry(self):
        custom = {"things": TableDescriptor("things", ("ID", "NAME"))}
        assert lookup("Things", custom) is custom["things"]
        assert lookup("orders", custom) is None


class TestTableDescriptor:
    """TableDescriptor 정규화"""

    def test_normalizes_case(self):
        d = TableDescriptor("Things", ("id", "name"), primary_key="id", column_types={"name": "STRING"})
        assert d.name == "things"
        assert d.columns == ("ID", "NAME")
        assert d.primary_key == "ID"
        assert d.column_type("name") == "STRING"

    def test_untyped_column(self):
        assert TABLES["raw_menu"].column_type("PRICE") is None

    def test_primary_key_must_be_allowed(self):
        with pytest.raises(ValueError):
            TableDescriptor("things", ("NAME",), primary_key="ID")


class TestDashboardColumns:
    """대시보드 화면이 읽고 쓰는 컬럼이 허용 목록에 포함"""

    def test_orders_archive_columns(self):
        assert {"ARCHIVED", "CREATED_AT"} <= TABLES["orders"].allowed
        assert TABLES["orders"].column_type("archived") == "BOOLEAN"
        assert TABLES["orders"].column_type("created_at") == "TIMESTAMP"

    def test_customer_address_and_payment(self):
        expected = {"UNIT", "STREET", "BARANGAY", "CITY", "PAYMENT_MODE", "ORDER_MODE"}
        assert expected <= TABLES["customers"].allowed

    def test_order_item_snapshot_columns(self):
        assert {"NAME", "SIZE", "CATEGORY", "QTY", "PRICE"} <= TABLES["order_items"].allowed
