"""
CDC Mirror 서버 — 실시간 미러 프로세스 + 라이브니스 엔드포인트

lifespan:
    startup  — Snowflake 연결 → 소스 풀 → (선택) 캡처 트리거 설치 → 구독 시작
    shutdown — 구독 중지 → 소스 풀 해제 → Snowflake 연결 해제

HTTP: GET / 만 제공 (헬스 체크용)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cdc_mirror import __version__
from cdc_mirror.applier import ChangeApplier
from cdc_mirror.config import settings
from cdc_mirror.schema import TABLES
from cdc_mirror.source import SourceClient
from cdc_mirror.subscriber import EventSubscriber
from cdc_mirror.warehouse import WarehouseClient

logger = logging.getLogger(__name__)

LIVENESS_MESSAGE = "Source → Snowflake realtime sync running"


@asynccontextmanager
async def mirror_lifespan(app: FastAPI):
    logger.info("CDC mirror starting...")
    warehouse = WarehouseClient()
    source = SourceClient()
    subscriber = None
    try:
        await warehouse.connect()
        await source.connect()

        if settings.INSTALL_CAPTURE_TRIGGERS:
            for table in TABLES:
                await source.install_capture_trigger(table)

        subscriber = EventSubscriber(source, ChangeApplier(warehouse))
        await subscriber.start()
        app.state.subscriber = subscriber
        logger.info("Realtime sync active")

        yield
    finally:
        try:
            if subscriber is not None:
                await subscriber.stop()
        finally:
            try:
                await source.close()
            finally:
                await warehouse.close()
                logger.info("CDC mirror shut down")


def create_app(with_mirror: bool = True) -> FastAPI:
    """FastAPI 앱 생성. with_mirror=False 면 미러 없이 라이브니스만 (테스트용)"""
    app = FastAPI(
        title="CDC Mirror",
        version=__version__,
        lifespan=mirror_lifespan if with_mirror else None,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get("/")
    async def root():
        return {"message": LIVENESS_MESSAGE, "version": __version__}

    return app


app = create_app()


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info(f"Server running on port {settings.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
