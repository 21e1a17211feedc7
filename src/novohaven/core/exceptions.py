"""Domain error taxonomy and exception handlers with request_id in responses."""

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.novohaven.core.logging import get_logger

logger = get_logger(__name__)


class WorkflowError(Exception):
    """Base class for workflow engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Missing input, unknown recipe/step/execution, or an action not allowed in this state."""


class NotFoundError(ValidationError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(ValidationError):
    status_code = status.HTTP_409_CONFLICT


class UnresolvedVariableError(WorkflowError):
    """A step template references variables the compiler could not resolve."""

    def __init__(self, variables: list[str], prompt: str | None = None):
        super().__init__(f"Unresolved variables: {', '.join(variables)}")
        self.variables = variables
        self.prompt = prompt


class ExecutorError(WorkflowError):
    """A provider or tool failure raised from inside an executor."""

    status_code = status.HTTP_502_BAD_GATEWAY


class AssistantError(WorkflowError):
    """The workflow assistant could not get an answer from the AI provider."""

    status_code = status.HTTP_502_BAD_GATEWAY


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
        logger.warning(
            "Workflow error",
            error_type=type(exc).__name__,
            error=exc.message,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )
