from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Path, status
from pydantic import BaseModel, Field

from ..auth import Principal
from ..dependencies import get_current_user, get_database
from ..services.database import KEY_PATTERN, Database, ensure_not_foreign, get_owned_record

router = APIRouter()

# Never writable through an update
PROTECTED_CALL_FIELDS = {"id", "userId"}


class CallRequest(BaseModel):
    """A recorded site visit"""

    id: str = Field(pattern=KEY_PATTERN)
    projectId: str = Field(min_length=1)
    title: str | None = None
    roomTitle: str | None = None
    transcript: str | None = None
    summary: str | None = None
    reportHtml: str | None = None
    areas: list[Any] | None = None
    images: list[Any] | None = None


@router.get("/calls")
def list_calls(user: Principal = Depends(get_current_user), database: Database = Depends(get_database)):
    return database.list_by_user("calls", user.uid)


@router.post("/calls", status_code=status.HTTP_201_CREATED)
def create_call(
    body: CallRequest,
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    ensure_not_foreign(database, "calls", body.id, user.uid)
    call = body.model_dump(exclude_none=True)
    if body.title is None and body.roomTitle is not None:
        call["title"] = body.roomTitle
    call.update(userId=user.uid, createdAt=datetime.now(timezone.utc).isoformat())
    database.set(f"calls/{body.id}", call)
    return call


@router.get("/calls/{call_id}")
def get_call(
    call_id: str = Path(pattern=KEY_PATTERN),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    return get_owned_record(database, "calls", call_id, user.uid, "Call")


@router.put("/calls/{call_id}")
def update_call(
    call_id: str = Path(pattern=KEY_PATTERN),
    updates: dict[str, Any] = Body(...),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    get_owned_record(database, "calls", call_id, user.uid, "Call")
    database.update(f"calls/{call_id}", {k: v for k, v in updates.items() if k not in PROTECTED_CALL_FIELDS})
    return {"success": True}


@router.delete("/calls/{call_id}")
def delete_call(
    call_id: str = Path(pattern=KEY_PATTERN),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    get_owned_record(database, "calls", call_id, user.uid, "Call")
    database.delete(f"calls/{call_id}")
    return {"success": True}
