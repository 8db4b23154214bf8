from __future__ import annotations

from fastapi import FastAPI

from supplier_orders.adapters.inbound.web.fastapi_app import create_app
from supplier_orders.bootstrap import UseCases, build_usecases
from supplier_orders.config import load_settings
from supplier_orders.utils.logging import configure_logging


def app_from_usecases(usecases: UseCases) -> FastAPI:
    return create_app(
        usecases.submit_cart,
        usecases.manage_order,
        usecases.sync_downstream,
        usecases.get_order,
        usecases.list_orders,
        usecases.partners,
    )


def create_asgi_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.log_level, json=settings.log_json)
    return app_from_usecases(build_usecases(settings))
