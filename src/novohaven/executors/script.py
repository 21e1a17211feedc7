"""Script executor: runs inline Python or Node.js with JSON on stdin."""

import asyncio
import json
import os
from typing import Any

from src.novohaven.core.logging import get_logger
from src.novohaven.executors.base import (
    ExecutorContext,
    ExecutorResult,
    StepExecutor,
    ValidationResult,
    merged_config,
)
from src.novohaven.models import RecipeStep
from src.novohaven.schemas.executor import ConfigField, ConfigFieldOption

logger = get_logger(__name__)

# Flag each runtime uses to run an inline program
RUNTIME_FLAGS = {"python3": "-c", "node": "-e"}


class ScriptExecutor(StepExecutor):
    type = "script"
    display_name = "Script"
    icon = "📜"
    description = "Run a Python or Node.js script with JSON input/output"

    def __init__(self, default_timeout_ms: int = 60000):
        self.default_timeout_ms = default_timeout_ms

    def _config(self, step: RecipeStep) -> dict[str, Any]:
        defaults: dict[str, Any] = {
            "runtime": "python3",
            "script": "",
            "timeout": self.default_timeout_ms,
        }
        if not step.executor_config:
            defaults["script"] = step.prompt_template or ""
        return merged_config(defaults, step.executor_config)

    def validate_config(self, step: RecipeStep) -> ValidationResult:
        config = self._config(step)
        result = ValidationResult()
        if not config["script"]:
            result.errors.append("Script content is required")
        if config["runtime"] not in RUNTIME_FLAGS:
            result.errors.append("Runtime must be python3 or node")
        return result

    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        """Run the script; stdout becomes the step content.

        stdin receives a JSON object of the user inputs plus
        ``step_<N>_output`` for every completed step.
        """
        config = self._config(step)
        script: str = config["script"]
        runtime: str = config["runtime"]
        if not script:
            return ExecutorResult.failure("No script provided")
        if runtime not in RUNTIME_FLAGS:
            return ExecutorResult.failure("Runtime must be python3 or node")

        timeout_ms = int(config["timeout"] or self.default_timeout_ms)
        stdin = json.dumps(context.variables()).encode()

        try:
            proc = await asyncio.create_subprocess_exec(
                runtime,
                RUNTIME_FLAGS[runtime],
                script,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ},
            )
        except OSError as e:
            return ExecutorResult.failure(f"Failed to spawn {runtime}: {e}")

        logger.info("Script started", runtime=runtime, pid=proc.pid)
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(stdin), timeout=timeout_ms / 1000
            )
        except TimeoutError:
            proc.kill()
            await proc.communicate()
            logger.warning("Script timed out", runtime=runtime, timeout_ms=timeout_ms)
            return ExecutorResult.failure(f"Script timed out after {timeout_ms}ms")
        except asyncio.CancelledError:
            proc.kill()
            await asyncio.shield(proc.wait())
            logger.info("Script cancelled", runtime=runtime, pid=proc.pid)
            raise

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            error = f"Script exited with code {proc.returncode}"
            if stderr:
                error = f"{error}: {stderr[:500]}"
            return ExecutorResult.failure(
                error,
                metadata={"exit_code": proc.returncode, "stderr": stderr[:2000]},
            )

        return ExecutorResult(
            success=True,
            content=stdout,
            metadata={
                "runtime": runtime,
                "exit_code": 0,
                "stderr": stderr[:2000] or None,
            },
            prompt_used=f"[{runtime}] {script[:200]}",
            model_used=runtime,
        )

    def get_config_schema(self) -> list[ConfigField]:
        return [
            ConfigField(
                name="runtime",
                label="Runtime",
                type="select",
                required=True,
                default_value="python3",
                options=[
                    ConfigFieldOption(value="python3", label="Python 3"),
                    ConfigFieldOption(value="node", label="Node.js"),
                ],
                help_text="Language runtime to execute the script",
            ),
            ConfigField(
                name="script",
                label="Script",
                type="code",
                required=True,
                language="python",
                help_text=(
                    "Script receives JSON on stdin (user inputs + previous step outputs). "
                    "Write output to stdout."
                ),
            ),
            ConfigField(
                name="timeout",
                label="Timeout (ms)",
                type="number",
                default_value=self.default_timeout_ms,
                help_text="Maximum execution time in milliseconds",
            ),
        ]
