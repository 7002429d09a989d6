"""Request correlation ids.

The id is bound per request by the app middleware, stamped on every log line
and forwarded to the payment processor and the push gateway.
"""

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Inbound ids end up in logs and outbound headers
_ACCEPTED_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def accept_correlation_id(header_value: str | None) -> str:
    """Return the caller's id when well formed, else a fresh one."""
    if header_value and _ACCEPTED_ID.fullmatch(header_value):
        return header_value
    return generate_correlation_id()


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


@contextmanager
def correlation_scope(cid: str) -> Iterator[str]:
    """Bind cid for the duration of the block."""
    token = set_correlation_id(cid)
    try:
        yield cid
    finally:
        reset_correlation_id(token)
