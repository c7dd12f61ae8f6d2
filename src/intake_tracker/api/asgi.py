"""ASGI entrypoint for the intake tracker API."""

from intake_tracker.api.app import create_app
from intake_tracker.containers import build_container

app = create_app(build_container())
