from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth import Principal
from ..config import Settings
from ..dependencies import get_current_user, get_database, get_settings
from ..errors import AccessDenied, NotFound
from ..services.database import Database
from ..services.ledger import CreditAccount

router = APIRouter()

# Fields a user may never set on their own record
PROTECTED_USER_FIELDS = {"id", "creditsTotal", "creditsUsed"}


def _ensure_self(user_id: str, user: Principal) -> None:
    if user_id != user.uid:
        raise AccessDenied()


@router.get("/users/{user_id}")
def get_user(user_id: str, user: Principal = Depends(get_current_user), database: Database = Depends(get_database)):
    _ensure_self(user_id, user)
    record = database.get(f"users/{user_id}")
    if not record:
        raise NotFound("User")
    return record


@router.put("/users/{user_id}")
def update_user(
    user_id: str,
    updates: dict[str, Any] = Body(...),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    _ensure_self(user_id, user)
    # accounts are provisioned elsewhere; an update must not create one
    if not database.get(f"users/{user_id}"):
        raise NotFound("User")
    allowed = {k: v for k, v in updates.items() if k not in PROTECTED_USER_FIELDS}
    database.update(f"users/{user_id}", allowed)
    return {"success": True}


@router.get("/users/{user_id}/stats")
def get_user_stats(
    user_id: str,
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    """Credit balance and record counts for the current user"""
    _ensure_self(user_id, user)
    # same policy as the ledger: no record, no account
    record = database.get(f"users/{user.uid}")
    if record is None:
        raise NotFound("User")
    account = CreditAccount.from_record(record, settings.default_credits_total)
    projects = database.list_by_user("projects", user.uid)
    calls = database.list_by_user("calls", user.uid)
    return {
        "creditsUsed": account.credits_used,
        "creditsTotal": account.credits_total,
        "creditsAvailable": account.available,
        "projectCount": len(projects),
        "callCount": len(calls),
        "plan": record.get("plan") or "Free",
    }
