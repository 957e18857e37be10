"""
변경 이벤트 모델 테스트
"""
import json

import pytest

from cdc_mirror.models import ChangeEvent, EventKind


class TestEventKind:

    def test_parse_uppercase(self):
        assert EventKind.parse("INSERT") is EventKind.INSERT

    def test_parse_passthrough(self):
        assert EventKind.parse(EventKind.DELETE) is EventKind.DELETE

    def test_parse_unknown(self):
        assert EventKind.parse("TRUNCATE") is None
        assert EventKind.parse(None) is None


class TestFromNotification:
    """from_notification — pg_notify 페이로드 파싱"""

    def test_insert_payload(self):
        payload = json.dumps({"op": "INSERT", "table": "orders", "new": {"id": 1}, "old": None})
        event = ChangeEvent.from_notification(payload)
        assert event.kind is EventKind.INSERT
        assert event.table == "orders"
        assert event.after == {"id": 1}
        assert event.before is None

    def test_update_payload_has_both_rows(self):
        payload = {"op": "UPDATE", "table": "orders", "new": {"id": 1, "x": 2}, "old": {"id": 1, "x": 1}}
        event = ChangeEvent.from_notification(payload)
        assert event.kind is EventKind.UPDATE
        assert event.before == {"id": 1, "x": 1}

    def test_bytes_payload(self):
        event = ChangeEvent.from_notification(b'{"op": "DELETE", "table": "mop", "old": {"id": 4}}')
        assert event.kind is EventKind.DELETE
        assert event.before == {"id": 4}

    def test_alternate_keys(self):
        payload = {"eventType": "insert", "record": {"id": 9}, "old_record": None}
        event = ChangeEvent.from_notification(payload, table="medium")
        assert event.table == "medium"
        assert event.after == {"id": 9}

    def test_channel_table_used_when_missing(self):
        event = ChangeEvent.from_notification({"op": "INSERT", "new": {"id": 1}}, table="category")
        assert event.table == "category"

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            ChangeEvent.from_notification("{not json")

    def test_non_object_payload(self):
        with pytest.raises(ValueError):
            ChangeEvent.from_notification("[1, 2]")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            ChangeEvent.from_notification({"op": "TRUNCATE", "table": "orders"})

    def test_missing_table(self):
        with pytest.raises(ValueError):
            ChangeEvent.from_notification({"op": "INSERT", "new": {"id": 1}})

    def test_non_dict_rows_become_none(self):
        event = ChangeEvent.from_notification({"op": "INSERT", "table": "orders", "new": "oops"})
        assert event.after is None
