from ikanban.models.config import (
    IkanbanSettings,
    OrchestratorConfig,
    RuntimeConfig,
    WorktreeConfig,
)
from ikanban.models.conversation import (
    ConversationMessage,
    ConversationMessageMeta,
    ConversationRole,
    ConversationSessionMeta,
    MessagePart,
    ModelRef,
    PromptSubmission,
)
from ikanban.models.events import (
    LogLevel,
    OrchestratorEvent,
    OrchestratorEventType,
    RuntimeEvent,
    RuntimeEventType,
    RuntimeLogEntry,
    UiUpdate,
)
from ikanban.models.project import ProjectRef
from ikanban.models.task import RunTaskInput, TaskRuntime, TaskState
from ikanban.models.worktree import (
    CleanupPolicy,
    CleanupTaskWorktreeResult,
    DiffMode,
    ManagedWorktree,
    WorktreeDiff,
    WorktreeMergeResult,
)

__all__ = [
    "CleanupPolicy",
    "CleanupTaskWorktreeResult",
    "ConversationMessage",
    "ConversationMessageMeta",
    "ConversationRole",
    "ConversationSessionMeta",
    "DiffMode",
    "IkanbanSettings",
    "LogLevel",
    "ManagedWorktree",
    "MessagePart",
    "ModelRef",
    "OrchestratorConfig",
    "OrchestratorEvent",
    "OrchestratorEventType",
    "ProjectRef",
    "PromptSubmission",
    "RunTaskInput",
    "RuntimeConfig",
    "RuntimeEvent",
    "RuntimeEventType",
    "RuntimeLogEntry",
    "TaskRuntime",
    "TaskState",
    "UiUpdate",
    "WorktreeConfig",
    "WorktreeDiff",
    "WorktreeMergeResult",
]
