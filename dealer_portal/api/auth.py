from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from dealer_portal.core.audit import audit_log, log_audit
from dealer_portal.core.config import settings
from dealer_portal.core.enums import AuditAction, DealerStatus, UserRole
from dealer_portal.core.security import create_access_token, verify_password
from dealer_portal.schemas.dealer import (
    ChangePasswordIn,
    ChangePasswordOut,
    LoginIn,
    LoginOut,
    RegisterIn,
    RegisterOut,
)
from dealer_portal.services.dealers import (
    find_conflicting_dealer,
    find_dealer,
    register_dealer,
    set_password,
)
from dealer_portal.services.kintone import get_record_store
from dealer_portal.services.mappers import dealer_status, field_value, record_to_dealer

router = APIRouter(prefix="/api/auth", tags=["auth"])

REGISTRATION_MESSAGE = "Registration submitted. Your account will be reviewed by back office."


def _check_password_length(password: str, label: str = "Password"):
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"{label} must be at least {settings.MIN_PASSWORD_LENGTH} characters",
        )


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, store=Depends(get_record_store)):
    if not payload.code or not payload.password:
        raise HTTPException(status_code=400, detail="Code and password required")

    record = await find_dealer(store, payload.code)
    if record is None:
        raise HTTPException(status_code=401, detail="Dealer not found")

    status = dealer_status(record)
    if status != DealerStatus.ACTIVE:
        if status in (DealerStatus.PENDING_REVIEW, DealerStatus.PENDING_APPROVAL):
            raise HTTPException(status_code=401, detail="Your account is pending approval. Please wait for activation.")
        if status == DealerStatus.INACTIVE:
            raise HTTPException(status_code=401, detail="Your account has been deactivated. Please contact back office.")
        raise HTTPException(status_code=401, detail="Dealer not found or inactive")

    if not verify_password(payload.password, field_value(record, "login_password")):
        raise HTTPException(status_code=401, detail="Invalid password")

    dealer = record_to_dealer(record)
    if dealer.password_expiry and dealer.password_expiry < date.today():
        raise HTTPException(status_code=401, detail="Password expired. Please contact your administrator.")

    log_audit(dealer.code, AuditAction.LOGIN, {"code": dealer.code})
    token = create_access_token(dealer.code, UserRole.DEALER)
    return LoginOut(dealer=dealer, access_token=token)


@router.post("/register", response_model=RegisterOut)
@audit_log(AuditAction.REGISTER)
async def register(payload: RegisterIn, store=Depends(get_record_store)):
    _check_password_length(payload.password)

    conflict = await find_conflicting_dealer(store, payload.dealer_code, payload.email)
    if conflict == "code":
        raise HTTPException(status_code=409, detail="Dealer code already registered")
    if conflict == "email":
        raise HTTPException(status_code=409, detail="Email already registered")

    record_id, pm_warning = await register_dealer(store, payload)
    return RegisterOut(id=record_id, message=REGISTRATION_MESSAGE, pm_warning=pm_warning)


@router.put("/change-password", response_model=ChangePasswordOut)
@audit_log(AuditAction.CHANGE_PASSWORD)
async def change_password(payload: ChangePasswordIn, store=Depends(get_record_store)):
    if not payload.code or not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="All fields required")
    _check_password_length(payload.new_password, "New password")

    record = await find_dealer(store, payload.code)
    if record is None:
        raise HTTPException(status_code=401, detail="Dealer not found")
    if dealer_status(record) != DealerStatus.ACTIVE:
        raise HTTPException(status_code=401, detail="Dealer not active")
    if not verify_password(payload.current_password, field_value(record, "login_password")):
        raise HTTPException(status_code=401, detail="Current password incorrect")

    expiry = await set_password(store, record, payload.new_password)
    return ChangePasswordOut(new_expiry=expiry)
