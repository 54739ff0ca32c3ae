from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ikanban.models.project import ProjectRef
from ikanban.orchestrator.dependencies import get_projects
from ikanban.orchestrator.services.project_registry import InMemoryProjectRegistry

router = APIRouter(prefix="/projects", tags=["projects"])


class RegisterProjectRequest(BaseModel):
    id: str
    root_directory: str
    name: str | None = None


@router.get("/", response_model=list[ProjectRef])
async def list_projects(
    projects: InMemoryProjectRegistry = Depends(get_projects),
):
    return projects.list_projects()


@router.post("/", response_model=ProjectRef, status_code=201)
async def register_project(
    req: RegisterProjectRequest,
    projects: InMemoryProjectRegistry = Depends(get_projects),
):
    """Register a git repository that tasks can run against."""
    return projects.add_project(req.id, req.root_directory, req.name)
