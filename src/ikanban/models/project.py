import os

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ikanban.models.common import now_ms


class ProjectRef(BaseModel):
    """A registered project whose root holds the main git checkout."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    root_directory: str
    name: str
    created_at: int = Field(default_factory=now_ms)

    @model_validator(mode="after")
    def _check_fields(self) -> "ProjectRef":
        errors = validate_project_ref(self)
        if errors:
            raise ValueError(f"Invalid ProjectRef: {' '.join(errors)}")
        return self


def validate_project_ref(project: ProjectRef) -> list[str]:
    errors: list[str] = []
    if not project.id:
        errors.append("Project id must be a non-empty string.")
    if not project.name:
        errors.append("Project name must be a non-empty string.")
    if not project.root_directory:
        errors.append("Project root_directory must be a non-empty string.")
    elif not os.path.isabs(project.root_directory):
        errors.append("Project root_directory must be an absolute path.")
    if project.created_at <= 0:
        errors.append("Project created_at must be a positive timestamp.")
    return errors
