"""Process-wide collaborators created in the lifespan and kept on ``app.state``."""

from typing import Annotated

from fastapi import Depends, Request

from src.novohaven.executors.registry import ExecutorRegistry
from src.novohaven.services import AIService, ExecutionCoordinator


def get_registry(request: Request) -> ExecutorRegistry:
    return request.app.state.registry


def get_coordinator(request: Request) -> ExecutionCoordinator:
    return request.app.state.coordinator


def get_ai_service(request: Request) -> AIService:
    return request.app.state.ai_service


Registry = Annotated[ExecutorRegistry, Depends(get_registry)]
Coordinator = Annotated[ExecutionCoordinator, Depends(get_coordinator)]
AIServiceDep = Annotated[AIService, Depends(get_ai_service)]
