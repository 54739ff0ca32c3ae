import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ikanban.models.config import IkanbanSettings
from ikanban.models.conversation import ConversationMessageMeta, PromptSubmission
from ikanban.models.task import RunTaskInput, TaskRuntime
from ikanban.models.worktree import (
    CleanupPolicy,
    CleanupTaskWorktreeResult,
    WorktreeDiff,
    WorktreeMergeResult,
)
from ikanban.orchestrator.dependencies import get_orchestrator, get_settings
from ikanban.orchestrator.services.task_orchestrator import TaskOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class CreateTaskRequest(BaseModel):
    task_id: str
    project_id: str
    prompt: str
    title: str | None = None
    start_command: str | None = None


class PromptRequest(BaseModel):
    prompt: str


class CleanupRequest(BaseModel):
    policy: CleanupPolicy | None = None


@router.post("/", response_model=TaskRuntime, status_code=201)
async def create_task(
    req: CreateTaskRequest,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """Create a worktree and session for the task and submit its prompt.

    The task is in review when this returns; a failure leaves it failed
    and is reported with the underlying error.
    """
    return await orchestrator.run_task(
        RunTaskInput(
            task_id=req.task_id,
            project_id=req.project_id,
            initial_prompt=req.prompt,
            title=req.title,
            start_command=req.start_command,
        )
    )


@router.get("/", response_model=list[TaskRuntime])
async def list_tasks(
    project_id: str | None = None,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.list_tasks(project_id)


@router.get("/{task_id}", response_model=TaskRuntime)
async def get_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    task = orchestrator.get_task(task_id)
    if task is None:
        raise HTTPException(
            status_code=404, detail=f"Task {task_id} not found",
        )
    return task


@router.delete("/{task_id}", response_model=TaskRuntime)
async def delete_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.delete_task(task_id)


@router.post("/{task_id}/retry", response_model=TaskRuntime, status_code=201)
async def retry_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """Run a failed task again under a new derived id."""
    return await orchestrator.retry_task(task_id)


@router.post("/{task_id}/complete", response_model=TaskRuntime)
async def complete_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.complete_task(task_id)


@router.post("/{task_id}/prompt", response_model=PromptSubmission)
async def send_prompt(
    task_id: str,
    req: PromptRequest,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.send_follow_up_prompt(task_id, req.prompt)


@router.get("/{task_id}/messages", response_model=list[ConversationMessageMeta])
async def list_messages(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.list_task_messages(task_id)


@router.post("/{task_id}/cleanup", response_model=CleanupTaskWorktreeResult)
async def cleanup_task(
    task_id: str,
    req: CleanupRequest | None = None,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    settings: IkanbanSettings = Depends(get_settings),
):
    policy = (req.policy if req else None) or settings.worktree.cleanup_policy
    return await orchestrator.cleanup_task_worktree(task_id, policy)


@router.post("/{task_id}/merge", response_model=WorktreeMergeResult)
async def merge_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """Squash-merge the task's worktree branch into the project branch."""
    result = await orchestrator.merge_task_worktree(task_id)
    if not result.merged:
        logger.info("Merge of task %s produced no commit", task_id)
    return result


@router.get("/{task_id}/diff", response_model=WorktreeDiff)
async def task_diff(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_task_worktree_diff(task_id)
