"""Tests for container wiring."""

import asyncio

from retail_coordinator.adapters.memory_catalog_repository import (
    InMemoryCatalogRepository,
)
from retail_coordinator.adapters.payment_gateway import (
    HttpxPaymentGateway,
    SimulatedPaymentGateway,
)
from retail_coordinator.containers import build_container


def test_build_container_defaults_to_local_backends(settings) -> None:
    container = build_container(settings)

    assert isinstance(container.catalog, InMemoryCatalogRepository)
    assert isinstance(container.payment_agent.gateway, SimulatedPaymentGateway)
    assert container.payment_agent.max_retries == 1
    assert container.checkout_service.sagas is container.saga_orchestrator
    asyncio.run(container.close_resources())


def test_build_container_uses_payment_gateway_url(settings) -> None:
    configured = settings.model_copy(
        update={"payment_gateway_url": "https://pay.test/", "payment_gateway_api_key": "k"}
    )
    container = build_container(configured)

    gateway = container.payment_agent.gateway
    assert isinstance(gateway, HttpxPaymentGateway)
    assert gateway.base_url == "https://pay.test"
    asyncio.run(container.close_resources())
    assert gateway.http_client.is_closed
