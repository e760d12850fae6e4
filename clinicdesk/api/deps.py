from fastapi import Depends, HTTPException, Request, status

from clinicdesk.services.dashboard_session import DashboardSession
from clinicdesk.services.edit_coordinator import EditTransactionCoordinator
from clinicdesk.services.storage_service import AssessmentImageService
from clinicdesk.services.sync_store import SyncStore

def get_dashboard(request: Request) -> DashboardSession:
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard session is not running",
        )
    return dashboard

def get_store(dashboard: DashboardSession = Depends(get_dashboard)) -> SyncStore:
    return dashboard.store

def get_coordinator(dashboard: DashboardSession = Depends(get_dashboard)) -> EditTransactionCoordinator:
    return dashboard.coordinator

def get_image_service(dashboard: DashboardSession = Depends(get_dashboard)) -> AssessmentImageService:
    if dashboard.images is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image storage is not configured",
        )
    return dashboard.images
