from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from molda_ledger.crud import crud_user
from molda_ledger.models import user as user_models
from molda_ledger.services.onboarding import onboard_user
from molda_ledger.db.core import get_db
from molda_ledger.routers.deps import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


@router.post("/", response_model=user_models.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user: user_models.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new user. A verification message is sent to the email; if it
    can't be delivered the user is still created.
    """
    try:
        return crud_user.create_db_user(db=db, user_data=user)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.post("/verify-email", response_model=user_models.UserResponse)
def verify_email(payload: user_models.VerifyEmail, db: Session = Depends(get_db)):
    try:
        return crud_user.verify_db_user_email(db=db, token=payload.token)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.post("/resend-verification", status_code=status.HTTP_202_ACCEPTED)
def resend_verification(payload: user_models.ResendVerification, db: Session = Depends(get_db)):
    """
    Send a fresh verification token. Returns 502 if the message can't be delivered.
    """
    try:
        delivery_id = crud_user.resend_verification(db=db, email=payload.email)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return {"message": "Verification email sent", "delivery_id": delivery_id}


@router.post("/login", status_code=status.HTTP_202_ACCEPTED)
def request_login(payload: user_models.LoginRequest, db: Session = Depends(get_db)):
    """
    Email a 6-digit login code, valid for ten minutes. Returns 502 if the
    message can't be delivered.
    """
    try:
        delivery_id = crud_user.request_login_otp(db=db, identifier=payload.identifier)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return {"message": "Login code sent", "delivery_id": delivery_id}


@router.post("/login/verify", response_model=user_models.UserResponse)
def verify_login(payload: user_models.VerifyLoginOtp, db: Session = Depends(get_db)):
    try:
        return crud_user.verify_login_otp(db=db, identifier=payload.identifier, otp_code=payload.otp_code)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.get("/me", response_model=user_models.UserResponse)
def read_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_user = crud_user.read_db_user(db=db, user_id=user_id)
    if db_user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return db_user


@router.post("/me/onboarding", response_model=user_models.OnboardingResponse, status_code=status.HTTP_201_CREATED)
def onboard_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Create the default account and categories for the current user.
    """
    try:
        return onboard_user(db=db, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
