import logging
from collections import deque
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ikanban.errors import (
    GitCommandError,
    InvalidInputError,
    RuntimeCallError,
    TaskNotFoundError,
    TaskStateError,
)
from ikanban.models.config import IkanbanSettings
from ikanban.orchestrator.routers.health import router as health_router
from ikanban.orchestrator.routers.logs import router as logs_router
from ikanban.orchestrator.routers.projects import router as projects_router
from ikanban.orchestrator.routers.tasks import router as tasks_router
from ikanban.orchestrator.services.conversation_manager import ConversationManager
from ikanban.orchestrator.services.event_bus import RuntimeEventBus
from ikanban.orchestrator.services.event_relay import relay_orchestrator_event
from ikanban.orchestrator.services.git_ops import GitOps
from ikanban.orchestrator.services.project_registry import InMemoryProjectRegistry
from ikanban.orchestrator.services.task_orchestrator import TaskOrchestrator
from ikanban.orchestrator.services.worktree_manager import (
    ClientProvider,
    WorktreeManager,
)
from ikanban.orchestrator.ws import websocket_endpoint
from ikanban.runtime_client.client import RuntimeClientProvider

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    InvalidInputError: 400,
    TaskNotFoundError: 404,
    TaskStateError: 409,
    RuntimeCallError: 502,
    GitCommandError: 502,
}


def configure_logging(settings: IkanbanSettings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def build_lifespan(
    settings: IkanbanSettings,
    runtime: ClientProvider | None = None,
    git_ops: GitOps | None = None,
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        provider = runtime or RuntimeClientProvider(
            settings.runtime.url, settings.runtime.timeout,
        )
        connect = getattr(provider, "connect", None)
        if connect is not None:
            await connect()
        logger.info("Using agent runtime at %s", settings.runtime.url)

        projects = InMemoryProjectRegistry()
        if settings.workspace_path:
            projects.add_project("default", settings.workspace_path)

        worktrees = WorktreeManager(
            provider,
            git_ops,
            delete_branch_on_remove=settings.worktree.delete_branch_on_remove,
            merge_message_prefix=settings.worktree.merge_message_prefix,
        )
        conversations = ConversationManager(provider)
        orchestrator = TaskOrchestrator(worktrees, conversations, projects)

        event_bus = RuntimeEventBus()
        unsubscribe_relay = orchestrator.subscribe(
            lambda event: relay_orchestrator_event(event, event_bus)
        )
        log_buffer = deque(maxlen=settings.log_buffer_size)
        unsubscribe_logs = event_bus.subscribe_to_logs(log_buffer.append)

        app.state.settings = settings
        app.state.runtime = provider
        app.state.projects = projects
        app.state.worktrees = worktrees
        app.state.conversations = conversations
        app.state.orchestrator = orchestrator
        app.state.event_bus = event_bus
        app.state.log_buffer = log_buffer

        yield

        # Shutdown
        unsubscribe_logs()
        unsubscribe_relay()
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("Orchestrator shutdown complete")

    return lifespan


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    for error_type in type(exc).__mro__:
        status = _ERROR_STATUS.get(error_type)
        if status is not None:
            break
    else:
        status = 500
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(
    settings: IkanbanSettings | None = None,
    runtime: ClientProvider | None = None,
    git_ops: GitOps | None = None,
) -> FastAPI:
    settings = settings or IkanbanSettings()
    configure_logging(settings)

    app = FastAPI(
        title="ikanban Orchestrator",
        version="0.1.0",
        lifespan=build_lifespan(settings, runtime, git_ops),
    )
    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, _domain_error_handler)

    app.include_router(health_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    app.include_router(logs_router)
    app.add_websocket_route("/ws", websocket_endpoint)

    return app


def run() -> None:
    """Entry point for the `ikanban-server` console script."""
    import uvicorn

    settings = IkanbanSettings()
    uvicorn.run(
        "ikanban.orchestrator.app:create_app",
        factory=True,
        host=settings.orchestrator.host,
        port=settings.orchestrator.rest_port,
    )
