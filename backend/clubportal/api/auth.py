import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import config
from ..auth_utils import (
    create_session,
    end_session,
    generate_reset_token,
    hash_password,
    verify_password,
)
from ..deps import (
    club_admin_session,
    get_club_admin,
    get_db,
    get_mentor,
    get_student,
    mentor_session,
    student_session,
)
from ..mailer import Mailer, get_mailer
from ..models import AuthSession, ClubAdmin, ClubRegistration, Mentor, PasswordResetToken, StudentAccount
from ..notifications import send_password_reset_email
from ..schemas import (
    ChangePasswordRequest,
    ClubSessionOut,
    EmailLoginRequest,
    ForgotPasswordRequest,
    MentorSessionOut,
    MessageOut,
    ResetPasswordRequest,
    StudentLoginRequest,
    StudentSessionOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account exists with this roll number, a password reset link has been sent."


def _change_password(account, payload: ChangePasswordRequest) -> MessageOut:
    if not verify_password(payload.current_password, account.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    account.password_hash = hash_password(payload.new_password)
    return MessageOut(message="Password changed successfully")


def _logout(db: Session, token: str | None) -> MessageOut:
    if token:
        end_session(db, token.strip())
    return MessageOut(message="Logged out")


# ---------------------------------------------------------------------------
# Students


@router.post("/api/auth/student/login", response_model=StudentSessionOut)
def student_login(payload: StudentLoginRequest, db: Session = Depends(get_db)):
    student = db.execute(
        select(StudentAccount).where(StudentAccount.roll_number == payload.roll_number)
    ).scalar_one_or_none()
    if not student or not verify_password(payload.password, student.password_hash):
        logger.info("failed student login for %s", payload.roll_number)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    session = create_session(db, "student", student.id)
    return StudentSessionOut(token=session.token, roll_number=student.roll_number, message="Login successful")


@router.get("/api/auth/student/session", response_model=StudentSessionOut)
def student_restore(
    session: AuthSession = Depends(student_session),
    student: StudentAccount = Depends(get_student),
):
    return StudentSessionOut(token=session.token, roll_number=student.roll_number, message="Restored session")


@router.post("/api/auth/student/logout", response_model=MessageOut)
def student_logout(
    x_student_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    return _logout(db, x_student_token)


@router.post("/api/auth/student/change-password", response_model=MessageOut)
def student_change_password(
    payload: ChangePasswordRequest,
    student: StudentAccount = Depends(get_student),
):
    return _change_password(student, payload)


@router.post("/api/auth/student/forgot-password", response_model=MessageOut)
def student_forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    student = db.execute(
        select(StudentAccount).where(StudentAccount.roll_number == payload.roll_number)
    ).scalar_one_or_none()
    if not student:
        return MessageOut(message=FORGOT_PASSWORD_MESSAGE)

    email = student.student_email
    if not email:
        registration = (
            db.execute(
                select(ClubRegistration)
                .where(
                    ClubRegistration.roll_number == student.roll_number,
                    ClubRegistration.status == "approved",
                )
                .order_by(ClubRegistration.created_at.desc())
            )
            .scalars()
            .first()
        )
        if not registration:
            raise HTTPException(
                status_code=400,
                detail="No email address found for this account. Please contact your club admin.",
            )
        email = registration.student_email
        student.student_email = email

    token = generate_reset_token()
    db.add(
        PasswordResetToken(
            roll_number=student.roll_number,
            token=token,
            expires_at=datetime.utcnow() + timedelta(minutes=config.RESET_TOKEN_TTL_MINUTES),
        )
    )
    background_tasks.add_task(send_password_reset_email, mailer, email, student.roll_number, token)
    return MessageOut(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/api/auth/student/reset-password", response_model=MessageOut)
def student_reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    reset = db.execute(
        select(PasswordResetToken).where(PasswordResetToken.token == payload.token.strip())
    ).scalar_one_or_none()
    if not reset or reset.used or reset.expires_at < datetime.utcnow():
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    student = db.execute(
        select(StudentAccount).where(StudentAccount.roll_number == reset.roll_number)
    ).scalar_one_or_none()
    if not student:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    student.password_hash = hash_password(payload.new_password)
    reset.used = True
    return MessageOut(message="Password reset successfully")


# ---------------------------------------------------------------------------
# Club admins


@router.post("/api/auth/club/login", response_model=ClubSessionOut)
def club_login(payload: EmailLoginRequest, db: Session = Depends(get_db)):
    admin = db.execute(
        select(ClubAdmin).where(ClubAdmin.email == payload.email)
    ).scalar_one_or_none()
    if not admin or not verify_password(payload.password, admin.password_hash):
        logger.info("failed club admin login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    session = create_session(db, "club_admin", admin.id)
    return ClubSessionOut(token=session.token, club_id=admin.club_id, message="Login successful")


@router.get("/api/auth/club/session", response_model=ClubSessionOut)
def club_restore(
    session: AuthSession = Depends(club_admin_session),
    admin: ClubAdmin = Depends(get_club_admin),
):
    return ClubSessionOut(token=session.token, club_id=admin.club_id, message="Restored session")


@router.post("/api/auth/club/logout", response_model=MessageOut)
def club_logout(
    x_club_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    return _logout(db, x_club_token)


@router.post("/api/auth/club/change-password", response_model=MessageOut)
def club_change_password(
    payload: ChangePasswordRequest,
    admin: ClubAdmin = Depends(get_club_admin),
):
    return _change_password(admin, payload)


# ---------------------------------------------------------------------------
# Mentors


@router.post("/api/auth/mentor/login", response_model=MentorSessionOut)
def mentor_login(payload: EmailLoginRequest, db: Session = Depends(get_db)):
    mentor = db.execute(
        select(Mentor).where(Mentor.email == payload.email)
    ).scalar_one_or_none()
    if not mentor or not verify_password(payload.password, mentor.password_hash):
        logger.info("failed mentor login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    session = create_session(db, "mentor", mentor.id)
    return MentorSessionOut(token=session.token, mentor_id=mentor.id, message="Login successful")


@router.get("/api/auth/mentor/session", response_model=MentorSessionOut)
def mentor_restore(
    session: AuthSession = Depends(mentor_session),
    mentor: Mentor = Depends(get_mentor),
):
    return MentorSessionOut(token=session.token, mentor_id=mentor.id, message="Restored session")


@router.post("/api/auth/mentor/logout", response_model=MessageOut)
def mentor_logout(
    x_mentor_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    return _logout(db, x_mentor_token)


@router.post("/api/auth/mentor/change-password", response_model=MessageOut)
def mentor_change_password(
    payload: ChangePasswordRequest,
    mentor: Mentor = Depends(get_mentor),
):
    return _change_password(mentor, payload)
