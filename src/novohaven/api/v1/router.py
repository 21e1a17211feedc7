from fastapi import APIRouter

from src.novohaven.api.v1 import assistant, executions, executors

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(executions.router)
api_router.include_router(assistant.router)
api_router.include_router(executors.router)
