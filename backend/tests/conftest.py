import json

import httpx
import pytest

from backoffice.clients.notifications import NotificationClient
from backoffice.services.registry import build_registry
from fake_leancloud import FakeLeanCloud

ADMIN = "a" * 24
DISPATCHER = "d" * 24


@pytest.fixture(autouse=True)
def _set_env(monkeypatch):
    monkeypatch.setenv("LEAN_APP_ID", "app")
    monkeypatch.setenv("LEAN_APP_KEY", "key")
    monkeypatch.setenv("LEAN_MASTER_KEY", "master")
    monkeypatch.setenv("LEAN_SERVER_URL", "https://api.leancloud.cn")
    monkeypatch.setenv("NOTIFICATION_SERVICE_ENABLED", "false")
    for name in ("APP_ENV", "AUTH_DISABLED", "RESPONSE_CACHE_ENABLED", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store():
    return FakeLeanCloud(
        unique_fields={
            "User": ("email",),
            "Load": ("orderId",),
            "Carrier": ("mcNumber", "dotNumber"),
        }
    )


@pytest.fixture
def sent_notifications():
    return []


@pytest.fixture
async def notifier(sent_notifications):
    def handler(request):
        if request.url.path == "/notifications":
            sent_notifications.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    client = NotificationClient(
        base_url="http://notifications.test",
        transport=httpx.MockTransport(handler),
    )
    yield client
    await client.close()


@pytest.fixture
async def registry(store, notifier):
    client = store.client()
    yield build_registry(client, notifier=notifier)
    await client.close()
