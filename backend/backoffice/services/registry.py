from __future__ import annotations

from dataclasses import dataclass

from backoffice.clients.leancloud import LeanCloudClient
from backoffice.clients.notifications import NotificationClient
from backoffice.repositories.history_repository import HistoryRepository
from backoffice.repositories.record_repository import RecordRepository
from backoffice.services.entities.carriers import CARRIER_CONFIG
from backoffice.services.entities.customers import CUSTOMER_CONFIG
from backoffice.services.entities.loads import LOAD_CONFIG
from backoffice.services.entities.payments import PAYABLE_CONFIG, RECEIVABLE_CONFIG
from backoffice.services.entities.users import USER_CONFIG
from backoffice.services.history_service import HistoryRecorder
from backoffice.services.record_controller import ControllerConfig, RecordController
from backoffice.services.response_cache import NullCache, ResponseCache


@dataclass(frozen=True)
class ControllerRegistry:
    client: LeanCloudClient
    loads: RecordController
    customers: RecordController
    carriers: RecordController
    users: RecordController
    receivables: RecordController
    payables: RecordController
    history: HistoryRepository
    notifier: NotificationClient | None = None

    def by_name(self, name: str) -> RecordController:
        controllers = {
            "loads": self.loads,
            "customers": self.customers,
            "carriers": self.carriers,
            "users": self.users,
            "receivables": self.receivables,
            "payables": self.payables,
        }
        try:
            return controllers[name]
        except KeyError:
            raise KeyError(f"Unknown entity: {name}") from None


def build_registry(
    client: LeanCloudClient,
    *,
    cache: ResponseCache | None = None,
    cache_ttl_seconds: int = 300,
    notifier: NotificationClient | None = None,
) -> ControllerRegistry:
    history = HistoryRepository(client)
    cache = cache or NullCache()

    def controller(config: ControllerConfig) -> RecordController:
        return RecordController(
            RecordRepository(client, config.class_name),
            config,
            history=HistoryRecorder(history, config.entity),
            cache=cache,
            cache_ttl_seconds=cache_ttl_seconds,
        )

    return ControllerRegistry(
        client=client,
        loads=controller(LOAD_CONFIG),
        customers=controller(CUSTOMER_CONFIG),
        carriers=controller(CARRIER_CONFIG),
        users=controller(USER_CONFIG),
        receivables=controller(RECEIVABLE_CONFIG),
        payables=controller(PAYABLE_CONFIG),
        history=history,
        notifier=notifier,
    )
