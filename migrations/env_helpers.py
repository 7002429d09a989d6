"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without alembic.context.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

from psycopg2.extensions import parse_dsn

_DRIVER_PREFIX = "postgresql+psycopg2://"


def dsn_to_sqlalchemy_url(dsn: str, password: str | None = None) -> str:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    Unix-socket hosts (absolute paths) are passed through the ``host`` query
    parameter; TCP hosts go into the netloc.
    """
    params = parse_dsn(dsn)
    if not params.get("password") and password:
        params["password"] = password

    user = quote_plus(params.get("user", ""))
    secret = quote_plus(params.get("password", ""))
    auth = f"{user}:{secret}@" if secret else (f"{user}@" if user else "")
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")
    port = params.get("port", "5432")

    if host.startswith("/"):
        return f"{_DRIVER_PREFIX}{auth}/{dbname}?host={quote_plus(host)}"
    return f"{_DRIVER_PREFIX}{auth}{host}:{port}/{dbname}"


def normalize_url(url: str, password: str | None = None) -> str:
    """Force the psycopg2 driver and inject password when the URL has none."""
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            url = _DRIVER_PREFIX + url[len(scheme):]
            break

    parsed = urlparse(url)
    if password and not parsed.password:
        netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        url = urlunparse(parsed._replace(netloc=netloc))
    return url


def get_database_url() -> str:
    """SQLAlchemy URL from DATABASE_URL (URL or libpq DSN) and DB_PASSWORD.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    password = os.environ.get("DB_PASSWORD") or None
    if "://" in url:
        return normalize_url(url, password)
    return dsn_to_sqlalchemy_url(url, password)
