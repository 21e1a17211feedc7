"""Service layer.

Leaf services are re-exported here. Import the engine and the assistant
from their modules: they depend on the executors, which depend on these.
"""

from src.novohaven.services.ai_service import AIService
from src.novohaven.services.execution_coordinator import ExecutionCoordinator
from src.novohaven.services.prompt_compiler import PromptCompiler
from src.novohaven.services.scraping_service import BrightDataClient
from src.novohaven.services.usage_service import UsageService

__all__ = [
    "AIService",
    "BrightDataClient",
    "ExecutionCoordinator",
    "PromptCompiler",
    "UsageService",
]
