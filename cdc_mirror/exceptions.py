"""
CDC Mirror 예외 정의
"""


class MirrorError(Exception):
    """미러 파이프라인 공통 예외"""


class NotConnectedError(MirrorError):
    """connect() 호출 전에 클라이언트를 사용한 경우"""


class WarehouseError(MirrorError):
    """대상 웨어하우스 연결/실행 실패"""

    def __init__(self, message: str, sql: str = ""):
        super().__init__(message)
        self.sql = sql

    def __str__(self) -> str:
        base = super().__str__()
        if self.sql:
            return f"{base} [sql: {self.sql[:200]}]"
        return base


class SourceError(MirrorError):
    """소스 DB 조회/구독 실패"""
