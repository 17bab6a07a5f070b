# demo_scheduling/api/v1/api.py

from fastapi import APIRouter

from demo_scheduling.api.v1.endpoints import admin_demo_sessions, demo_sessions, health

# This is the main router for the v1 API.
# It will include all the specific endpoint routers.
api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(demo_sessions.router)
api_router.include_router(admin_demo_sessions.router)
