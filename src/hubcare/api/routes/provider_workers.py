"""Provider worker roster endpoints (/provider/workers)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, ConfigDict, Field

from hubcare.api.auth import ROLE_PROVIDER, CurrentUser
from hubcare.api.envelope import ok, pagination
from hubcare.api.rbac import is_uuid, require_role
from hubcare.api.serializers import serialize_worker_profile
from hubcare.domain.errors import WorkerNotFoundError

router = APIRouter(prefix="/provider/workers", tags=["provider-workers"])

MAX_PAGE_SIZE = 100


class CreateWorkerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str | None = Field(default=None, max_length=32)
    company_address: str | None = Field(default=None, alias="companyAddress", max_length=500)


class UpdateWorkerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str | None = Field(default=None, max_length=32)
    company_address: str | None = Field(default=None, alias="companyAddress", max_length=500)


def _worker_id(worker_id: str) -> str:
    if not is_uuid(worker_id):
        raise WorkerNotFoundError(worker_id)
    return worker_id


@router.post("", status_code=201)
def create_worker(
    body: CreateWorkerRequest,
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    from hubcare.domain.workers import create_worker as create

    worker = create(
        provider_id=user.id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        company_address=body.company_address,
    )
    return ok("Worker added successfully.", serialize_worker_profile(worker), status_code=201)


@router.get("")
def list_workers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    from hubcare.domain.workers import list_workers as list_roster

    workers, total = list_roster(user.id, page=page, limit=limit)
    return ok(
        "All workers fetched successfully.",
        {
            "workers": [serialize_worker_profile(w) for w in workers],
            **pagination(page, limit, total),
        },
    )


@router.get("/{worker_id}")
def get_worker(
    worker_id: str = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    from hubcare.domain.workers import get_worker as load

    worker = load(user.id, _worker_id(worker_id))
    return ok("Worker detail fetched successfully.", serialize_worker_profile(worker))


@router.put("/{worker_id}")
def update_worker(
    body: UpdateWorkerRequest,
    worker_id: str = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    from hubcare.domain.workers import edit_worker

    # Only fields present in the body change
    changes = body.model_dump(exclude_unset=True)
    worker = edit_worker(user.id, _worker_id(worker_id), changes)
    return ok("Worker updated successfully.", serialize_worker_profile(worker))


@router.delete("/{worker_id}")
def delete_worker(
    worker_id: str = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_PROVIDER)),
):
    from hubcare.domain.workers import delete_worker as remove

    remove(user.id, _worker_id(worker_id))
    return ok("Worker deleted successfully.")
