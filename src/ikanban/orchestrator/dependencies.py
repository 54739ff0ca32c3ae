from collections import deque

from fastapi import Request

from ikanban.models.config import IkanbanSettings
from ikanban.models.events import RuntimeLogEntry
from ikanban.orchestrator.services.event_bus import RuntimeEventBus
from ikanban.orchestrator.services.project_registry import InMemoryProjectRegistry
from ikanban.orchestrator.services.task_orchestrator import TaskOrchestrator
from ikanban.runtime_client.client import RuntimeClientProvider


def get_settings(request: Request) -> IkanbanSettings:
    return request.app.state.settings


def get_runtime(request: Request) -> RuntimeClientProvider:
    return request.app.state.runtime


def get_projects(request: Request) -> InMemoryProjectRegistry:
    return request.app.state.projects


def get_orchestrator(request: Request) -> TaskOrchestrator:
    return request.app.state.orchestrator


def get_event_bus(request: Request) -> RuntimeEventBus:
    return request.app.state.event_bus


def get_log_buffer(request: Request) -> deque[RuntimeLogEntry]:
    return request.app.state.log_buffer
