# demo_scheduling/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from demo_scheduling.api.v1.api import api_router
from demo_scheduling.core.config import settings
from demo_scheduling.core.exceptions import AppError, app_error_handler, database_error_handler
from demo_scheduling.core.limiter import limiter

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Demo scheduling service starting up (env={settings.ENV})")
    yield
    logger.info("Demo scheduling service shutting down")


app = FastAPI(
    title="Demo Session Scheduling Service",
    version="1.0.0",
    description="""
        **Demo Session Scheduling Service**

        Capacity-limited demo sessions that students sign up to present in.

        ## Features

        * **Availability**: Browse open sessions and remaining slots
        * **Signup**: Reserve, edit and withdraw a presentation slot
        * **Admin**: Manage sessions, record attendance and feedback

        ## Authentication

        All endpoints except health checks require JWT authentication via the
        `Authorization: Bearer <token>` header. Admin endpoints require the
        `admin` role.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,  # Allow cookies and authorization headers
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Demo Scheduling Service is running"}
