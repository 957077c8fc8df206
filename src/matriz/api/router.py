"""Main API routers combining all endpoints."""

from fastapi import APIRouter

from matriz.api import credentials, functions, operations, subscriptions

api_router = APIRouter(prefix="/api/v1")

# Include all routers
api_router.include_router(operations.router)
api_router.include_router(subscriptions.router)
api_router.include_router(credentials.router)

functions_router = APIRouter(prefix="/functions/v1")
functions_router.include_router(functions.router)
