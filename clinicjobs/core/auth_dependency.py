from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from clinicjobs.core.security import decode_access_token
from clinicjobs.db.session import get_db
from clinicjobs.db.models.user import User
from clinicjobs.db.models.doctor import DoctorProfile
from clinicjobs.db.models.hospital import Hospital

bearer_scheme = HTTPBearer()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """Get current user email from JWT token."""
    email = decode_access_token(credentials.credentials)
    if email is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return email


def get_current_user_obj(
    email: str = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> User:
    """Get current User object from JWT token."""
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(
            status_code=404,
            detail="User not found"
        )
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is disabled")
    return user


def get_current_doctor(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
) -> DoctorProfile:
    """Doctor profile of the current user; 403 for non-doctors."""
    doctor = db.query(DoctorProfile).filter(
        DoctorProfile.user_id == user.id,
        DoctorProfile.deleted_at.is_(None)
    ).first()
    if not doctor:
        raise HTTPException(status_code=403, detail="Doctor profile required")
    return doctor


def get_current_hospital(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
) -> Hospital:
    """Hospital account owned by the current user; 403 for non-hospital users."""
    hospital = db.query(Hospital).filter(Hospital.user_id == user.id).first()
    if not hospital:
        raise HTTPException(status_code=403, detail="Hospital account required")
    return hospital
