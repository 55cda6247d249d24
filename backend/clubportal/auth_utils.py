import hashlib
import os
import secrets
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .config import SESSION_TTL_HOURS
from .models import AuthSession

ROLES = ("student", "club_admin", "mentor")


def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.sha256(salt + password.encode()).hexdigest()
    return f"{salt.hex()}:{digest}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        salt_hex, stored_digest = hashed_password.split(":", 1)
    except ValueError:
        return False
    salt = bytes.fromhex(salt_hex)
    computed = hashlib.sha256(salt + plain_password.encode()).hexdigest()
    return secrets.compare_digest(computed, stored_digest)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def generate_reset_token() -> str:
    return f"{uuid.uuid4()}-{uuid.uuid4()}"


def create_session(db: Session, role: str, subject_id: int) -> AuthSession:
    if role not in ROLES:
        raise ValueError(f"unknown session role: {role}")
    now = datetime.utcnow()
    db.execute(
        delete(AuthSession).where(
            AuthSession.role == role,
            AuthSession.subject_id == subject_id,
            AuthSession.expires_at < now,
        )
    )
    session = AuthSession(
        token=generate_token(),
        role=role,
        subject_id=subject_id,
        created_at=now,
        expires_at=now + timedelta(hours=SESSION_TTL_HOURS),
    )
    db.add(session)
    db.flush()
    return session


def end_session(db: Session, token: str) -> bool:
    result = db.execute(delete(AuthSession).where(AuthSession.token == token))
    return bool(result.rowcount)


def find_session(db: Session, token: str) -> AuthSession | None:
    return db.execute(
        select(AuthSession).where(AuthSession.token == token)
    ).scalar_one_or_none()
