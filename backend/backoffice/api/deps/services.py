from __future__ import annotations

from fastapi import Request

from backoffice.config import Settings, load_settings
from backoffice.services.registry import ControllerRegistry


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings or load_settings()


def get_registry(request: Request) -> ControllerRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Controller registry is not initialised")
    return registry
