"""ASGI entrypoint for the retail coordinator API."""

from retail_coordinator.api.app import create_app
from retail_coordinator.containers import build_container

app = create_app(build_container())
