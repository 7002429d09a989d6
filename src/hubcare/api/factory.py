"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from hubcare.api.envelope import install_exception_handlers
from hubcare.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    correlation_scope,
)

from .routers import public
from .routes import admin, bookings, promo, provider_bookings, provider_workers, wallet


def create_app() -> FastAPI:
    """Create the FastAPI app with every router and the envelope handlers mounted."""
    app = FastAPI(
        title="Hubcare",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER))) as cid:
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response

    install_exception_handlers(app)

    app.include_router(public.router)
    app.include_router(bookings.router)
    app.include_router(provider_bookings.router)
    app.include_router(provider_workers.router)
    app.include_router(wallet.router)
    app.include_router(promo.router)
    app.include_router(admin.router)

    return app
