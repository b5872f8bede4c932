from fastapi import APIRouter, Request

from backoffice.api.routes.loads import router as loads_router
from backoffice.api.routes.parties import router as parties_router
from backoffice.api.routes.payments import router as payments_router
from backoffice.api.routes.stats import router as stats_router
from backoffice.api.routes.users import router as users_router

api_router = APIRouter()
api_router.include_router(loads_router)
api_router.include_router(parties_router)
api_router.include_router(users_router)
api_router.include_router(payments_router)
api_router.include_router(stats_router)


@api_router.get("/healthz")
async def healthcheck(request: Request) -> dict[str, str]:
    body = {"status": "ok"}
    registry = getattr(request.app.state, "registry", None)
    notifier = registry.notifier if registry is not None else None
    if notifier is None:
        return body
    if not notifier.enabled:
        body["notifications"] = "disabled"
    elif await notifier.check_health():
        body["notifications"] = "ok"
    else:
        body["notifications"] = "unreachable"
    return body
