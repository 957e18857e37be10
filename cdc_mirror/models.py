"""
변경 이벤트 모델

소스 변경 피드(pg_notify) 페이로드를 ChangeEvent 로 변환한다.
이벤트는 처리 동안에만 존재하며 미러가 저장하지 않는다.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class EventKind(str, Enum):
    """행 단위 변경 유형"""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, raw: Any) -> Optional["EventKind"]:
        """'INSERT' / 'insert' / EventKind → EventKind, 알 수 없으면 None"""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


@dataclass
class ChangeEvent:
    """단일 변경 알림.

    Attributes:
        kind: insert / update / delete
        table: 소스 테이블명
        after: 변경 후 행 (insert/update)
        before: 변경 전 행 (update/delete)
    """
    kind: EventKind
    table: str
    after: Optional[Dict[str, Any]] = None
    before: Optional[Dict[str, Any]] = None

    @classmethod
    def from_notification(cls, payload: Union[str, bytes, dict], table: Optional[str] = None) -> "ChangeEvent":
        """pg_notify 페이로드 → ChangeEvent.

        페이로드 형식: {"op": "INSERT", "table": "orders", "new": {...}, "old": {...}}
        ("type"/"eventType", "record"/"old_record" 키도 허용)

        Raises:
            ValueError: JSON 이 아니거나 op/table 을 알 수 없는 경우
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise ValueError(f"invalid change payload: {e}") from e
        if not isinstance(payload, dict):
            raise ValueError("change payload must be a JSON object")

        raw_kind = payload.get("op") or payload.get("type") or payload.get("eventType")
        kind = EventKind.parse(raw_kind)
        if kind is None:
            raise ValueError(f"unknown event kind: {raw_kind!r}")

        name = payload.get("table") or table
        if not name:
            raise ValueError("change payload has no table")

        after = payload.get("new", payload.get("record"))
        before = payload.get("old", payload.get("old_record"))
        return cls(
            kind=kind,
            table=name,
            after=after if isinstance(after, dict) else None,
            before=before if isinstance(before, dict) else None,
        )
