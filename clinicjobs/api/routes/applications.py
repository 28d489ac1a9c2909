"""
Doctor-facing application endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from clinicjobs.api.deps import get_lifecycle, run_with_retry
from clinicjobs.core.auth_dependency import get_current_doctor
from clinicjobs.core.rate_limit import apply_rate_limit
from clinicjobs.db.models.doctor import DoctorProfile
from clinicjobs.schemas.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatsResponse,
    ReapplyRequest,
    WithdrawRequest,
)
from clinicjobs.services.lifecycle_service import ApplicationLifecycle
from clinicjobs.services.status_catalog import ApplicationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


# ✅ SUBMIT APPLICATION
@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(apply_rate_limit)],
)
def create_application(
    payload: ApplicationCreate,
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    view = run_with_retry(
        lambda: lifecycle.create(doctor.id, payload.job_id, payload.cover_letter)
    )
    return ApplicationResponse.from_view(view)


# ✅ LIST MY APPLICATIONS
@router.get("", response_model=ApplicationListResponse)
def list_my_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    result = lifecycle.list(doctor.id, status=status_filter, page=page, page_size=page_size)
    return ApplicationListResponse.from_page(result)


# ✅ APPLICATION COUNTS
@router.get("/stats", response_model=ApplicationStatsResponse)
def application_stats(
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    return lifecycle.stats(doctor.id)


# ✅ APPLICATION DETAIL
@router.get("/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: int,
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    return ApplicationResponse.from_view(lifecycle.get(application_id, doctor.id))


# ✅ WITHDRAW
@router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
def withdraw_application(
    application_id: int,
    payload: Optional[WithdrawRequest] = None,
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    reason = payload.reason if payload else None
    view = run_with_retry(lambda: lifecycle.withdraw(application_id, doctor.id, reason))
    return ApplicationResponse.from_view(view)


# ✅ RESUBMIT AFTER WITHDRAWAL
@router.post(
    "/{application_id}/reapply",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(apply_rate_limit)],
)
def reapply(
    application_id: int,
    payload: Optional[ReapplyRequest] = None,
    doctor: DoctorProfile = Depends(get_current_doctor),
    lifecycle: ApplicationLifecycle = Depends(get_lifecycle),
):
    cover_letter = payload.cover_letter if payload else None
    view = run_with_retry(lambda: lifecycle.reapply(application_id, doctor.id, cover_letter))
    return ApplicationResponse.from_view(view)
