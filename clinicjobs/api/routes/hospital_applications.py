"""
Hospital review endpoints over applications to the hospital's jobs.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from clinicjobs.api.deps import get_lifecycle, run_with_retry
from clinicjobs.core.auth_dependency import get_current_hospital
from clinicjobs.db.models.hospital import Hospital
from clinicjobs.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    StatusUpdateRequest,
)
from clinicjobs.services.lifecycle_service import ApplicationLifecycle
from clinicjobs.services.status_catalog import ApplicationStatus

router = APIRouter(prefix="/hospital/applications", tags=["Hospital Applications"])


# ✅ APPLICATIONS TO MY JOBS
@router.get("", response_model=ApplicationListResponse)
def list_hospital_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    hospital: Hospital = Depends(get_current_hospital),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    result = lifecycle.list_for_hospital(hospital.id, status=status_filter, page=page, page_size=page_size)
    return ApplicationListResponse.from_page(result)


# ✅ REVIEW DECISION
@router.patch("/{application_id}/status", response_model=ApplicationResponse)
def update_application_status(
    application_id: int,
    payload: StatusUpdateRequest,
    hospital: Hospital = Depends(get_current_hospital),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    """Move an application to reviewing, accepted or rejected."""
    view = run_with_retry(
        lambda: lifecycle.review(application_id, hospital.id, payload.status, payload.notes)
    )
    return ApplicationResponse.from_view(view)
