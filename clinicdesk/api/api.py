from fastapi import APIRouter
from clinicdesk.api.v1 import appointments, images

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(images.router, tags=["images"])
