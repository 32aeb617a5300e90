"""
Password hashing, login and the ownership guard.

bcrypt only looks at the first 72 bytes of a password; longer passwords are
truncated explicitly so hashing never raises.
"""
import logging
import os
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from portal import models
from portal.errors import Unauthorized
from portal.gateway import reading
from portal.sessions import Identity

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
    hashed = bcrypt.hashpw(_to_bcrypt_secret(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def identity_of(member: models.Member) -> Identity:
    return Identity(id=member.id, name=member.name, email=member.email, role=member.role)


def authenticate(db: Session, email: str, password: str) -> Identity:
    with reading(db, "Login failed."):
        member = db.query(models.Member).filter(models.Member.email == email.strip().lower()).first()
    if member is None or not verify_password(password, member.password_hash):
        logger.info("Failed login for %s", email)
        raise Unauthorized("Invalid email or password.")
    return identity_of(member)


def can_mutate(actor: Optional[Identity], owner_member_id: Optional[str]) -> bool:
    """True if actor is an admin or the member who owns the record."""
    if actor is None:
        return False
    if actor.role == "admin":
        return True
    return bool(owner_member_id) and actor.id == owner_member_id
