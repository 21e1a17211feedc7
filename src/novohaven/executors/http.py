"""HTTP request executor."""

import re
from typing import Any

import httpx

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
from src.novohaven.services.prompt_compiler import VARIABLE_PATTERN, stringify

logger = get_logger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def substitute_variables(template: str, variables: dict[str, Any]) -> str:
    """Replace ``{{name}}`` with ``variables[name]``; unknown names are left as-is."""

    def replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name in variables:
            return stringify(variables[name])
        return match.group(0)

    return VARIABLE_PATTERN.sub(replace, template)


class HttpExecutor(StepExecutor):
    type = "http"
    display_name = "HTTP Request"
    icon = "🌐"
    description = "Make an HTTP request to an API endpoint with variable substitution"

    def __init__(self, http_client: httpx.AsyncClient, default_timeout_ms: int = 30000):
        self.http_client = http_client
        self.default_timeout_ms = default_timeout_ms

    def _config(self, step: RecipeStep) -> dict[str, Any]:
        return merged_config(
            {"method": "GET", "url": "", "timeout": self.default_timeout_ms},
            step.executor_config,
        )

    def validate_config(self, step: RecipeStep) -> ValidationResult:
        config = self._config(step)
        result = ValidationResult()
        if not config["url"]:
            result.errors.append("URL is required")
        if str(config["method"]).upper() not in HTTP_METHODS:
            result.errors.append("Method must be GET, POST, PUT, PATCH, or DELETE")
        return result

    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        config = self._config(step)
        if not config["url"]:
            return ExecutorResult.failure("No URL configured")

        method = str(config["method"]).upper()
        timeout_ms = int(config["timeout"] or self.default_timeout_ms)
        variables = context.variables()

        url = substitute_variables(config["url"], variables)
        headers = {
            key: substitute_variables(str(value), variables)
            for key, value in (config.get("headers") or {}).items()
        }
        body = config.get("body")
        content = None
        if body and method != "GET":
            content = substitute_variables(stringify(body), variables)
            if not any(key.lower() == "content-type" for key in headers):
                headers["Content-Type"] = "application/json"

        request_label = f"{method} {url}"
        logger.info("Sending HTTP step request", method=method, url=url)
        try:
            response = await self.http_client.request(
                method,
                url,
                headers=headers,
                content=content,
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException:
            return ExecutorResult.failure(
                f"Request timed out after {timeout_ms}ms", prompt_used=request_label
            )
        except httpx.HTTPError as e:
            return ExecutorResult.failure(
                str(e) or "HTTP request failed", prompt_used=request_label
            )

        if not response.is_success:
            return ExecutorResult(
                success=False,
                content=response.text,
                error=f"HTTP {response.status_code} {response.reason_phrase}",
                metadata={
                    "status_code": response.status_code,
                    "status_text": response.reason_phrase,
                    "headers": dict(response.headers),
                },
                prompt_used=request_label,
                model_used="http",
            )

        return ExecutorResult(
            success=True,
            content=response.text,
            metadata={
                "status_code": response.status_code,
                "status_text": response.reason_phrase,
                "method": method,
                "url": url,
            },
            prompt_used=request_label,
            model_used="http",
        )

    def get_config_schema(self) -> list[ConfigField]:
        return [
            ConfigField(
                name="method",
                label="HTTP Method",
                type="select",
                required=True,
                default_value="GET",
                options=[ConfigFieldOption(value=m, label=m) for m in HTTP_METHODS],
            ),
            ConfigField(
                name="url",
                label="URL",
                type="text",
                required=True,
                help_text=(
                    "Use {{variable_name}} for dynamic values. "
                    "Example: https://api.example.com/search?q={{keyword}}"
                ),
            ),
            ConfigField(
                name="headers",
                label="Headers",
                type="json",
                help_text="JSON object of request headers. Variables supported.",
            ),
            ConfigField(
                name="body",
                label="Request Body",
                type="textarea",
                help_text="Request body (for POST/PUT/PATCH). Variables supported.",
            ),
            ConfigField(
                name="timeout",
                label="Timeout (ms)",
                type="number",
                default_value=self.default_timeout_ms,
                help_text="Maximum wait time in milliseconds",
            ),
        ]
