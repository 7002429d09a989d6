"""Provider worker roster.

Workers belong to exactly one provider. Deletion is soft: the row stays so
past assignments still resolve, but a deleted worker is invisible here and
can no longer be assigned.
"""

from __future__ import annotations

from hubcare.domain.errors import ValidationError, WorkerNotFoundError
from hubcare.infra.db import txn
from hubcare.infra.repositories.workers_repository import (
    get_provider_worker,
    insert_worker,
    list_provider_workers,
    soft_delete_worker,
    update_worker,
)
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Columns a provider may edit
EDITABLE_FIELDS = ("name", "email", "phone", "company_address")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def create_worker(
    *,
    provider_id: str,
    name: str,
    email: str,
    phone: str | None = None,
    company_address: str | None = None,
) -> dict:
    """Add a worker to the provider's roster.

    Raises:
        ValidationError: Blank name or email.
    """
    name, email = _clean(name), _clean(email)
    if not name or not email:
        raise ValidationError("Name and email are required.")

    with txn() as cur:
        worker = insert_worker(
            cur,
            provider_id=provider_id,
            name=name,
            email=email,
            phone=_clean(phone),
            company_address=_clean(company_address),
        )

    logger.info(
        "worker created",
        extra={"extra_fields": safe_log_context(provider_id=provider_id, worker_id=worker["id"])},
    )
    return worker


def list_workers(provider_id: str, *, page: int = 1, limit: int = 20) -> tuple[list[dict], int]:
    with txn() as cur:
        return list_provider_workers(cur, provider_id, limit=limit, offset=(page - 1) * limit)


def get_worker(provider_id: str, worker_id: str) -> dict:
    """Raises WorkerNotFoundError when absent, deleted or owned by another provider."""
    with txn() as cur:
        worker = get_provider_worker(cur, provider_id, worker_id)
    if worker is None:
        raise WorkerNotFoundError(worker_id)
    return worker


def edit_worker(provider_id: str, worker_id: str, changes: dict) -> dict:
    """Update the given fields; keys outside EDITABLE_FIELDS are ignored.

    Raises:
        ValidationError: Name or email cleared.
        WorkerNotFoundError: Worker absent, deleted or not owned.
    """
    fields = {k: _clean(v) for k, v in changes.items() if k in EDITABLE_FIELDS}
    for required in ("name", "email"):
        if required in fields and not fields[required]:
            raise ValidationError(f"{required.capitalize()} cannot be empty.")

    with txn() as cur:
        worker = update_worker(cur, provider_id, worker_id, fields)
    if worker is None:
        raise WorkerNotFoundError(worker_id)
    return worker


def delete_worker(provider_id: str, worker_id: str) -> None:
    with txn() as cur:
        deleted = soft_delete_worker(cur, provider_id, worker_id)
    if not deleted:
        raise WorkerNotFoundError(worker_id)

    logger.info(
        "worker deleted",
        extra={"extra_fields": safe_log_context(provider_id=provider_id, worker_id=worker_id)},
    )
