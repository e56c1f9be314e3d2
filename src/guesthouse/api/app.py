"""ASGI entry point: ``uvicorn guesthouse.api.app:app``."""

from .factory import create_app

app = create_app()
