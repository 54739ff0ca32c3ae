from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ikanban.models.worktree import CleanupPolicy


class RuntimeConfig(BaseModel):
    url: str = "http://127.0.0.1:4096"
    timeout: float = 60.0


class OrchestratorConfig(BaseModel):
    host: str = "0.0.0.0"
    rest_port: int = 8420


class WorktreeConfig(BaseModel):
    cleanup_policy: CleanupPolicy = CleanupPolicy.REMOVE
    delete_branch_on_remove: bool = True
    merge_message_prefix: str = "ikanban"


class IkanbanSettings(BaseSettings):
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    worktree: WorktreeConfig = Field(default_factory=WorktreeConfig)

    workspace_path: str = ""
    log_level: str = "INFO"
    log_buffer_size: int = 1000

    model_config = {"env_prefix": "IKANBAN_", "env_nested_delimiter": "__"}
