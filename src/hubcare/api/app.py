"""ASGI application instance."""

from hubcare.api.factory import create_app

app = create_app()
