from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field

from ..auth import Principal
from ..dependencies import get_current_user, get_database
from ..services.database import KEY_PATTERN, Database, ensure_not_foreign, get_owned_record

router = APIRouter()


class ProjectRequest(BaseModel):
    id: str = Field(pattern=KEY_PATTERN)
    title: str = Field(min_length=1)
    description: str | None = None
    color: str | None = None


@router.get("/projects")
def list_projects(user: Principal = Depends(get_current_user), database: Database = Depends(get_database)):
    return database.list_by_user("projects", user.uid)


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectRequest,
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    ensure_not_foreign(database, "projects", body.id, user.uid)
    project = {
        **body.model_dump(exclude_none=True),
        "userId": user.uid,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    database.set(f"projects/{body.id}", project)
    return project


@router.get("/projects/{project_id}")
def get_project(
    project_id: str = Path(pattern=KEY_PATTERN),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    return get_owned_record(database, "projects", project_id, user.uid, "Project")


@router.delete("/projects/{project_id}")
def delete_project(
    project_id: str = Path(pattern=KEY_PATTERN),
    user: Principal = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    get_owned_record(database, "projects", project_id, user.uid, "Project")
    database.delete(f"projects/{project_id}")
    return {"success": True}
