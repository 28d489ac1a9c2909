"""
Pydantic schemas for application endpoints.
"""
from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from clinicjobs.services.status_catalog import ApplicationStatus


class ApplicationCreate(BaseModel):
    """Schema for submitting an application."""
    job_id: int = Field(..., description="Job posting ID", ge=1)
    cover_letter: Optional[str] = Field(None, description="Optional cover letter", max_length=5000)


class WithdrawRequest(BaseModel):
    """Schema for withdrawing an application."""
    reason: Optional[str] = Field(None, description="Why the application is withdrawn", max_length=1000)


class ReapplyRequest(BaseModel):
    """Schema for resubmitting after a withdrawal."""
    cover_letter: Optional[str] = Field(None, description="New cover letter", max_length=5000)


class StatusUpdateRequest(BaseModel):
    """Schema for a hospital review decision."""
    status: ApplicationStatus = Field(..., description="Target status: reviewing, accepted or rejected")
    notes: Optional[str] = Field(None, description="Notes appended to the application", max_length=2000)


class ApplicationResponse(BaseModel):
    """Schema for application response, including derived visibility flags."""
    id: int = Field(..., description="Application ID")
    doctor_profile_id: int = Field(..., description="Doctor profile ID")
    job_id: int = Field(..., description="Job posting ID")
    previous_application_id: Optional[int] = Field(None, description="Withdrawn application this one replaces")
    status: ApplicationStatus = Field(..., description="Application status")
    cover_letter: Optional[str] = None
    notes: Optional[str] = None
    applied_at: datetime
    updated_at: datetime

    job_title: Optional[str] = None
    job_status: Optional[str] = None
    hospital_id: Optional[int] = None
    hospital_name: Optional[str] = None
    doctor_name: Optional[str] = None

    is_job_withdrawn: bool = Field(..., description="Job posting is no longer open")
    is_hospital_suspended: bool = Field(..., description="Hospital account is inactive")
    is_actionable: bool = Field(..., description="Application can still be reviewed")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 12,
                "doctor_profile_id": 3,
                "job_id": 7,
                "previous_application_id": None,
                "status": "applied",
                "cover_letter": "I have five years of emergency medicine experience.",
                "notes": None,
                "applied_at": "2026-01-15T10:00:00Z",
                "updated_at": "2026-01-15T10:00:00Z",
                "job_title": "ER Physician",
                "job_status": "approved",
                "hospital_id": 2,
                "hospital_name": "St. Mary Hospital",
                "doctor_name": "Ana Silva",
                "is_job_withdrawn": False,
                "is_hospital_suspended": False,
                "is_actionable": True
            }
        }

    @classmethod
    def from_view(cls, view) -> "ApplicationResponse":
        """Build the response from a lifecycle ApplicationView."""
        record = view.application
        return cls(
            id=record.id,
            doctor_profile_id=record.doctor_profile_id,
            job_id=record.job_id,
            previous_application_id=record.previous_application_id,
            status=record.status,
            cover_letter=record.cover_letter,
            notes=record.notes,
            applied_at=record.applied_at,
            updated_at=record.updated_at,
            job_title=view.job.title if view.job else None,
            job_status=view.job.status if view.job else None,
            hospital_id=view.hospital.id if view.hospital else None,
            hospital_name=view.hospital.name if view.hospital else None,
            doctor_name=view.doctor.full_name if view.doctor else None,
            **view.flags.to_dict(),
        )


class ApplicationListResponse(BaseModel):
    """Schema for a page of applications."""
    applications: List[ApplicationResponse] = Field(..., description="List of applications")
    total: int = Field(..., description="Total number of applications")
    page: int = Field(1, description="Current page number")
    page_size: int = Field(20, description="Number of items per page")
    total_pages: int = Field(0, description="Total number of pages")
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def from_page(cls, page) -> "ApplicationListResponse":
        return cls(
            applications=[ApplicationResponse.from_view(view) for view in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
        )


class ApplicationStatsResponse(BaseModel):
    """Schema for a doctor's application counts."""
    total: int = Field(..., description="Total number of applications")
    by_status: Dict[str, int] = Field(..., description="Count per status")
