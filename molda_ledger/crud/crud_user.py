from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from datetime import datetime, timedelta
import re
import secrets

from molda_ledger.db.core import UserDB, UserStatus, NotFoundError, ConflictError, BadRequestError, UnauthorizedError
from molda_ledger.models.user import UserCreate
from molda_ledger.services.notifier import Notifier, get_notifier, notify_quietly, VERIFY_EMAIL, LOGIN_OTP
from molda_ledger.config import get_settings
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)

VERIFICATION_TTL = timedelta(hours=24)
OTP_TTL = timedelta(minutes=10)

# Statuses that may not log in even with a verified email
BLOCKED_STATUSES = (UserStatus.SUSPENDED, UserStatus.INACTIVE)


# ===== VERIFICATION UTILITIES =====

def generate_verification_token() -> str:
    return secrets.token_urlsafe(32)


def generate_login_otp() -> str:
    """Six random digits, never starting with zero"""
    return str(100000 + secrets.randbelow(900000))


def _issue_verification_token(db_user: UserDB, now: datetime) -> None:
    db_user.verification_token = generate_verification_token()
    db_user.verification_expires_at = now + VERIFICATION_TTL
    db_user.updated_at = now


def _verification_payload(db_user: UserDB) -> dict:
    frontend_url = get_settings().frontend_url.rstrip('/')
    return {
        "name": db_user.name,
        "token": db_user.verification_token,
        "verify_url": f"{frontend_url}/verify-email?token={db_user.verification_token}",
        "expires_at": db_user.verification_expires_at.isoformat(),
    }


# ===== DATABASE OPERATIONS =====

def create_db_user(db: Session, user_data: UserCreate, notifier: Optional[Notifier] = None) -> UserDB:
    """Register a new user and send the verification message"""

    # Check natural keys one by one so the error names the clashing field
    if db.query(UserDB).filter(UserDB.email == user_data.email).first():
        raise ConflictError("Email already registered")

    if db.query(UserDB).filter(UserDB.national_id == user_data.national_id).first():
        raise ConflictError("National id already registered")

    if db.query(UserDB).filter(UserDB.phone == user_data.phone).first():
        raise ConflictError("Phone already registered")

    now = datetime.utcnow()
    db_user = UserDB(
        name=user_data.name,
        email=user_data.email,
        national_id=user_data.national_id,
        phone=user_data.phone,
        status=UserStatus.PENDING,
        is_email_verified=False,
        created_at=now,
    )
    _issue_verification_token(db_user, now)

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("User creation failed due to database constraint") from e

    logger.info(f"Registered user {db_user.id}")
    notify_quietly(notifier or get_notifier(), db_user.email, VERIFY_EMAIL, _verification_payload(db_user))
    return db_user


def read_db_user(db: Session, user_id: Optional[int] = None, email: Optional[str] = None) -> Optional[UserDB]:
    """Read a user by id or email"""

    query = db.query(UserDB)

    if user_id:
        return query.filter(UserDB.id == user_id).first()
    elif email:
        return query.filter(UserDB.email == email.lower()).first()
    else:
        raise ValueError("Must provide at least one identifier (user_id or email)")


def read_db_user_by_identifier(db: Session, identifier: str) -> Optional[UserDB]:
    """Look a user up by email, or by national id when there is no '@'"""
    identifier = identifier.strip()
    if "@" in identifier:
        return read_db_user(db, email=identifier)
    return db.query(UserDB).filter(UserDB.national_id == re.sub(r'\D', '', identifier)).first()


def verify_db_user_email(db: Session, token: str) -> UserDB:
    """Activate the user holding this verification token"""

    db_user = db.query(UserDB).filter(UserDB.verification_token == token).first()
    if not db_user:
        raise NotFoundError("Verification token not found")

    if db_user.is_email_verified:
        raise BadRequestError("Email already verified")

    now = datetime.utcnow()
    if db_user.verification_expires_at is None or now > db_user.verification_expires_at:
        raise BadRequestError("Verification token expired; request a new one")

    db_user.is_email_verified = True
    db_user.status = UserStatus.ACTIVE
    db_user.updated_at = now

    db.commit()
    db.refresh(db_user)

    logger.info(f"Verified email of user {db_user.id}")
    return db_user


def resend_verification(db: Session, email: str, notifier: Optional[Notifier] = None) -> str:
    """Issue a fresh token and resend it; delivery errors propagate"""

    db_user = read_db_user(db, email=email)
    if not db_user:
        raise NotFoundError("User not found")

    if db_user.is_email_verified:
        raise BadRequestError("Email already verified")

    _issue_verification_token(db_user, datetime.utcnow())
    db.commit()
    db.refresh(db_user)

    return (notifier or get_notifier()).send(db_user.email, VERIFY_EMAIL, _verification_payload(db_user))


def request_login_otp(db: Session, identifier: str, notifier: Optional[Notifier] = None) -> str:
    """
    Start a login: store a fresh 6-digit code valid for ten minutes and email
    it. A new request replaces any earlier code. Delivery errors propagate,
    since the code is useless if it never arrives.
    """
    db_user = read_db_user_by_identifier(db, identifier)
    if not db_user:
        raise NotFoundError("No user with this email or national id")

    if not db_user.is_email_verified:
        raise UnauthorizedError("Email not verified")

    if db_user.status in BLOCKED_STATUSES:
        raise UnauthorizedError(f"User is {db_user.status.value.lower()}")

    now = datetime.utcnow()
    db_user.otp_code = generate_login_otp()
    db_user.otp_expires_at = now + OTP_TTL
    db_user.updated_at = now
    db.commit()

    logger.info(f"Issued login code for user {db_user.id}")
    return (notifier or get_notifier()).send(db_user.email, LOGIN_OTP, {
        "name": db_user.name,
        "code": db_user.otp_code,
        "expires_at": db_user.otp_expires_at.isoformat(),
    })


def verify_login_otp(db: Session, identifier: str, otp_code: str) -> UserDB:
    """Check a login code; a matching code is consumed"""

    db_user = read_db_user_by_identifier(db, identifier)
    if not db_user:
        raise NotFoundError("User not found")

    if not db_user.otp_code or not db_user.otp_expires_at:
        raise UnauthorizedError("No login code was requested")

    if not secrets.compare_digest(db_user.otp_code, otp_code):
        logger.warning(f"Wrong login code for user {db_user.id}")
        raise UnauthorizedError("Invalid login code")

    now = datetime.utcnow()
    expired = now > db_user.otp_expires_at

    db_user.otp_code = None
    db_user.otp_expires_at = None
    db_user.updated_at = now
    db.commit()

    if expired:
        raise UnauthorizedError("Login code expired")

    db.refresh(db_user)
    logger.info(f"User {db_user.id} logged in")
    return db_user
