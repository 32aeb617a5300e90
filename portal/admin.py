"""
Admin management of members, students and events.

Every function expects the acting identity to already be checked as an
admin by the route layer; require_admin is exposed for that purpose.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from portal import models
from portal.auth import hash_password
from portal.errors import Conflict, Forbidden, NotFound, ValidationError
from portal.gateway import commit, reading
from portal.sessions import Identity
from portal.validators import is_cost, is_email, is_identifier, is_phone, sanitize

logger = logging.getLogger(__name__)

ROLES = ("admin", "member")


def require_admin(actor: Identity):
    if actor is None or not actor.is_admin:
        raise Forbidden("Admin access required.")


def _get(db: Session, model, record_id: str, label: str):
    if not is_identifier(record_id):
        raise ValidationError(f"Invalid {label} ID.")
    with reading(db, f"Failed to load {label}."):
        record = db.get(model, record_id.lower())
    if record is None:
        raise NotFound(f"{label.capitalize()} not found.")
    return record


def _has_registrations(db: Session, column, value) -> bool:
    with reading(db, "Failed to load registrations."):
        return db.query(models.Registration.id).filter(column == value).first() is not None


# -- members --

def list_members(db: Session) -> List[models.Member]:
    with reading(db, "Failed to load members."):
        return db.query(models.Member).order_by(models.Member.name).all()


def _member_fields(payload, password_required: bool):
    if not payload.name or not payload.email or (password_required and not payload.password):
        raise ValidationError("Missing required fields.")
    if not is_email(payload.email):
        raise ValidationError("Invalid email address.")
    role = payload.role or None
    if role is not None and role not in ROLES:
        raise ValidationError("Invalid role.")
    phone = payload.phone.strip() if payload.phone else None
    if phone is not None and not is_phone(phone):
        raise ValidationError("Phone must be exactly 10 digits.")
    name = sanitize(payload.name)
    if not name:
        raise ValidationError("Missing required fields.")
    return name, sanitize(payload.email).lower(), role, phone


def create_member(db: Session, payload) -> models.Member:
    name, email, role, phone = _member_fields(payload, password_required=True)
    role = role or "member"
    member = models.Member(id=models.new_id(), name=name, email=email, role=role, phone=phone,
                           password_hash=hash_password(payload.password))
    db.add(member)
    commit(db, "A member with this email or phone already exists.", "Failed to create member.")
    logger.info("Created member %s (%s)", member.id, role)
    return member


def update_member(db: Session, actor: Identity, member_id: str, payload) -> models.Member:
    name, email, role, phone = _member_fields(payload, password_required=False)
    member = _get(db, models.Member, member_id, "member")
    role = role or member.role
    if member.id == actor.id and role != "admin":
        raise Forbidden("You cannot remove your own admin role.")
    member.name = name
    member.email = email
    member.role = role
    member.phone = phone
    if payload.password:
        member.password_hash = hash_password(payload.password)
    commit(db, "A member with this email or phone already exists.", "Failed to update member.")
    logger.info("Updated member %s", member.id)
    return member


def delete_member(db: Session, actor: Identity, member_id: str):
    member = _get(db, models.Member, member_id, "member")
    if member.id == actor.id:
        raise Forbidden("You cannot delete your own account.")
    if _has_registrations(db, models.Registration.member_id, member.id):
        raise Conflict("This member has registrations and cannot be deleted.")
    db.delete(member)
    commit(db, "This member is still referenced.", "Failed to delete member.")
    logger.info("Deleted member %s", member.id)


def ensure_admin(db: Session, email: str, password: str, name: str = "Administrator") -> Optional[models.Member]:
    """Create the first admin account if no admin exists yet."""
    with reading(db, "Failed to load members."):
        existing = db.query(models.Member.id).filter(models.Member.role == "admin").first()
    if existing is not None:
        return None
    email = email.strip().lower()
    with reading(db, "Failed to load members."):
        taken = db.query(models.Member.id).filter(models.Member.email == email).first()
    if taken is not None:
        # never promote an existing account from the environment
        logger.warning("Bootstrap admin skipped: %s already belongs to a member", email)
        return None
    admin = models.Member(id=models.new_id(), name=sanitize(name), email=email,
                          role="admin", password_hash=hash_password(password))
    db.add(admin)
    commit(db, "A member with this email already exists.", "Failed to create admin.")
    logger.info("Created bootstrap admin %s", admin.email)
    return admin


# -- students --

def list_students(db: Session) -> List[models.Student]:
    with reading(db, "Failed to load students."):
        return db.query(models.Student).order_by(models.Student.name).all()


def update_student(db: Session, student_id: str, payload) -> models.Student:
    if not payload.name or not payload.phone or not payload.email:
        raise ValidationError("Missing required fields.")
    phone = payload.phone.strip()
    if not is_phone(phone):
        raise ValidationError("Phone must be exactly 10 digits.")
    if not is_email(payload.email):
        raise ValidationError("Invalid email address.")
    name = sanitize(payload.name)
    if not name:
        raise ValidationError("Missing required fields.")

    student = _get(db, models.Student, student_id, "student")
    student.name = name
    student.phone = phone
    student.email = sanitize(payload.email).lower()
    if payload.student_code is not None:
        student.student_code = sanitize(payload.student_code) or None
    commit(db, "Another student already uses this email, phone or student ID.", "Failed to update student.")
    logger.info("Updated student %s", student.id)
    return student


# -- events --

def list_events(db: Session) -> List[models.Event]:
    with reading(db, "Failed to load events."):
        return db.query(models.Event).order_by(models.Event.title).all()


def _event_fields(payload):
    if not payload.title or payload.cost is None:
        raise ValidationError("Missing required fields.")
    if not is_cost(payload.cost):
        raise ValidationError("Cost must be a non-negative number.")
    title = sanitize(payload.title)
    if not title:
        raise ValidationError("Missing required fields.")
    return title, float(payload.cost)


def create_event(db: Session, payload) -> models.Event:
    title, cost = _event_fields(payload)
    event = models.Event(id=models.new_id(), title=title, cost=cost)
    db.add(event)
    commit(db, "This event conflicts with an existing one.", "Failed to create event.")
    logger.info("Created event %s cost=%s", event.id, cost)
    return event


def update_event(db: Session, event_id: str, payload) -> models.Event:
    title, cost = _event_fields(payload)
    event = _get(db, models.Event, event_id, "event")
    event.title = title
    event.cost = cost
    commit(db, "This event conflicts with an existing one.", "Failed to update event.")
    logger.info("Updated event %s cost=%s", event.id, cost)
    return event


def delete_event(db: Session, event_id: str):
    event = _get(db, models.Event, event_id, "event")
    if _has_registrations(db, models.Registration.event_id, event.id):
        raise Conflict("This event has registrations and cannot be deleted.")
    db.delete(event)
    commit(db, "This event is still referenced.", "Failed to delete event.")
    logger.info("Deleted event %s", event.id)
