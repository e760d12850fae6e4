from contextlib import asynccontextmanager

from fastapi import FastAPI
from clinicdesk.core.config import settings
from clinicdesk.core.logger import logger
from clinicdesk.core.redis import RedisClient
from clinicdesk.db.session import build_session_factory
from clinicdesk.middleware.log_middleware import LogMiddleware
from clinicdesk.services.appointment_repository import AppointmentRepository
from clinicdesk.services.dashboard_session import DashboardSession
from clinicdesk.services.storage_service import AssessmentImageService, AssessmentImageStorage

@asynccontextmanager
async def lifespan(app: FastAPI):
    redis_client = RedisClient()
    remote = AppointmentRepository(build_session_factory(), publisher=redis_client)
    images = AssessmentImageService(AssessmentImageStorage())
    dashboard = DashboardSession(remote, redis_client, images=images)
    app.state.dashboard = dashboard
    dashboard.start()
    logger.info(f"{settings.PROJECT_NAME} listening on channel {settings.CHANGES_CHANNEL}")
    try:
        yield
    finally:
        await dashboard.stop()
        await redis_client.close()
        app.state.dashboard = None

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

from fastapi.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

@app.get("/")
async def root():
    return {"message": "Welcome to ClinicDesk API"}

from clinicdesk.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
