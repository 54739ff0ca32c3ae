import logging
from typing import Protocol

from ikanban.errors import InvalidInputError
from ikanban.models.common import normalize_directory, normalize_id, now_ms
from ikanban.models.project import ProjectRef

logger = logging.getLogger(__name__)


class ProjectRegistry(Protocol):
    def get_project(self, project_id: str) -> ProjectRef | None: ...


class InMemoryProjectRegistry:
    """Projects known to this orchestrator process, keyed by id."""

    def __init__(self, projects: list[ProjectRef] | None = None):
        self._projects: dict[str, ProjectRef] = {}
        for project in projects or []:
            self._projects[project.id] = project

    def add_project(
        self,
        project_id: str,
        root_directory: str,
        name: str | None = None,
    ) -> ProjectRef:
        project_id = normalize_id(project_id, "Project id")
        if project_id in self._projects:
            raise InvalidInputError(f"Project {project_id} is already registered.")

        root_directory = normalize_directory(root_directory, "Project root directory")
        project = ProjectRef(
            id=project_id,
            root_directory=root_directory,
            name=(name or "").strip() or project_id,
            created_at=now_ms(),
        )
        self._projects[project_id] = project
        logger.info("Registered project %s at %s", project_id, root_directory)
        return project

    def get_project(self, project_id: str) -> ProjectRef | None:
        return self._projects.get((project_id or "").strip())

    def list_projects(self) -> list[ProjectRef]:
        return sorted(self._projects.values(), key=lambda p: p.created_at)
