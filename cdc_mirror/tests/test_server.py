"""
라이브니스 엔드포인트 + lifespan 배선 테스트
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from cdc_mirror import __version__
from cdc_mirror.config import settings
from cdc_mirror.exceptions import SourceError
from cdc_mirror.schema import TABLES
from cdc_mirror.server import create_app, mirror_lifespan


class TestRootEndpoint:
    """GET /"""

    async def test_root_returns_200(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200

    async def test_root_has_message(self, client):
        data = (await client.get("/")).json()
        assert "realtime sync running" in data["message"]

    async def test_root_has_version(self, client):
        data = (await client.get("/")).json()
        assert data["version"] == __version__

    async def test_no_other_routes(self, client):
        resp = await client.get("/docs")
        assert resp.status_code == 404


@pytest.fixture()
def mirror_mocks():
    warehouse = AsyncMock()
    source = AsyncMock()
    subscriber = AsyncMock()
    with patch("cdc_mirror.server.WarehouseClient", return_value=warehouse), \
         patch("cdc_mirror.server.SourceClient", return_value=source), \
         patch("cdc_mirror.server.EventSubscriber", return_value=subscriber) as subscriber_cls, \
         patch.object(settings, "INSTALL_CAPTURE_TRIGGERS", True):
        yield MagicMock(warehouse=warehouse, source=source, subscriber=subscriber, subscriber_cls=subscriber_cls)


class TestLifespan:

    async def test_startup_and_shutdown(self, mirror_mocks):
        app = create_app(with_mirror=False)
        async with mirror_lifespan(app):
            mirror_mocks.warehouse.connect.assert_awaited_once()
            mirror_mocks.source.connect.assert_awaited_once()
            assert mirror_mocks.source.install_capture_trigger.await_count == len(TABLES)
            mirror_mocks.subscriber.start.assert_awaited_once()
            assert app.state.subscriber is mirror_mocks.subscriber

        mirror_mocks.subscriber.stop.assert_awaited_once()
        mirror_mocks.source.close.assert_awaited_once()
        mirror_mocks.warehouse.close.assert_awaited_once()

    async def test_shared_warehouse_handle(self, mirror_mocks):
        app = create_app(with_mirror=False)
        async with mirror_lifespan(app):
            source_arg, applier_arg = mirror_mocks.subscriber_cls.call_args.args
        assert source_arg is mirror_mocks.source
        assert applier_arg.warehouse is mirror_mocks.warehouse

    async def test_startup_failure_releases_clients(self, mirror_mocks):
        mirror_mocks.source.connect.side_effect = SourceError("refused")
        app = create_app(with_mirror=False)
        with pytest.raises(SourceError):
            async with mirror_lifespan(app):
                pass
        mirror_mocks.subscriber.start.assert_not_awaited()
        mirror_mocks.warehouse.close.assert_awaited_once()

    async def test_shutdown_failure_still_releases_clients(self, mirror_mocks):
        mirror_mocks.subscriber.stop.side_effect = RuntimeError("supervisor died")
        app = create_app(with_mirror=False)
        with pytest.raises(RuntimeError):
            async with mirror_lifespan(app):
                pass
        mirror_mocks.source.close.assert_awaited_once()
        mirror_mocks.warehouse.close.assert_awaited_once()
