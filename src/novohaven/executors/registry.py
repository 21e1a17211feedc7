"""Executor registry: maps step type tags to executors."""

import httpx

from src.novohaven.core.config import Settings
from src.novohaven.core.exceptions import ExecutorError
from src.novohaven.core.logging import get_logger
from src.novohaven.executors.ai import AIExecutor
from src.novohaven.executors.base import StepExecutor
from src.novohaven.executors.http import HttpExecutor
from src.novohaven.executors.scraping import ScrapingExecutor
from src.novohaven.executors.script import ScriptExecutor
from src.novohaven.executors.transform import TransformExecutor
from src.novohaven.models import StepType
from src.novohaven.services.ai_service import AIService
from src.novohaven.services.scraping_service import BrightDataClient
from src.novohaven.services.usage_service import UsageService

logger = get_logger(__name__)

FALLBACK_TYPE = StepType.AI.value


class ExecutorRegistry:
    """Holds one executor per step type.

    Built once at startup and passed to the engine and the assistant.
    """

    def __init__(self, executors: list[StepExecutor] | None = None) -> None:
        self._executors: dict[str, StepExecutor] = {}
        for executor in executors or []:
            self.register(executor)

    def register(self, executor: StepExecutor) -> None:
        """Register ``executor``, replacing any executor with the same type."""
        if executor.type in self._executors:
            logger.info("Replacing executor", executor_type=executor.type)
        self._executors[executor.type] = executor

    def get(self, step_type: str | None) -> StepExecutor | None:
        if not step_type:
            return None
        return self._executors.get(step_type)

    def get_all(self) -> list[StepExecutor]:
        return list(self._executors.values())

    def resolve(self, step_type: str | None) -> StepExecutor:
        """Executor for ``step_type``; unknown or missing types run on the ai executor.

        Raises:
            ExecutorError: If neither the type nor the ai fallback is registered.
        """
        executor = self.get(step_type)
        if executor is not None:
            return executor
        fallback = self._executors.get(FALLBACK_TYPE)
        if fallback is None:
            raise ExecutorError(f"No executor registered for step type {step_type!r}")
        if step_type and step_type != FALLBACK_TYPE:
            logger.warning(
                "Unknown step type, using fallback executor",
                step_type=step_type,
                fallback=FALLBACK_TYPE,
            )
        return fallback

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._executors

    def __len__(self) -> int:
        return len(self._executors)


def build_default_registry(
    settings: Settings,
    ai_service: AIService,
    scraping_client: BrightDataClient,
    http_client: httpx.AsyncClient,
    usage_service: UsageService | None = None,
) -> ExecutorRegistry:
    """Registry with the five built-in executors."""
    registry = ExecutorRegistry(
        [
            AIExecutor(ai_service),
            ScrapingExecutor(scraping_client, usage_service),
            ScriptExecutor(default_timeout_ms=settings.script_default_timeout_ms),
            HttpExecutor(http_client, default_timeout_ms=settings.http_default_timeout_ms),
            TransformExecutor(),
        ]
    )
    logger.info("Executor registry built", executor_types=[e.type for e in registry.get_all()])
    return registry
