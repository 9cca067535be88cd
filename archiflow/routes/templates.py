from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..auth import Principal
from ..dependencies import get_current_user, get_database
from ..services.database import KEY_PATTERN, Database, ensure_not_foreign

router = APIRouter()


class TemplateRequest(BaseModel):
    id: str = Field(pattern=KEY_PATTERN)
    name: str = Field(min_length=1)
    description: str | None = None
    htmlContent: str | None = None


@router.get("/templates")
def list_templates(user: Principal = Depends(get_current_user), database: Database = Depends(get_database)):
    return database.list_by_user("templates", user.uid)


@router.post("/templates", status_code=status.HTTP_201_CREATED)
def create_template(
    body: TemplateRequest,
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    ensure_not_foreign(database, "templates", body.id, user.uid)
    template = {
        **body.model_dump(exclude_none=True),
        "userId": user.uid,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    database.set(f"templates/{body.id}", template)
    return template
