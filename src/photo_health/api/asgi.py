"""ASGI entrypoint for the photo health API."""

from photo_health.api.app import create_app
from photo_health.containers import build_container

app = create_app(build_container())
