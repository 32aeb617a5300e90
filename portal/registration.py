"""
Registration write path.

A batch registration resolves the prices of all requested events from the
database, upserts the student by its natural key, skips events the student is
already registered for and inserts the rest in one commit. Prices submitted
by the client are never read.

Nothing here holds a lock between the duplicate check and the insert. Two
requests racing for the same (student, event) pair are settled by the unique
constraint on registrations: the loser's whole batch is rolled back and
reported as a Conflict. The student upsert has the same window; a losing
concurrent create also surfaces as a Conflict.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from sqlalchemy.orm import Session, joinedload

from portal import models
from portal.auth import can_mutate
from portal.errors import AllAlreadyRegistered, Conflict, Forbidden, NotFound, ValidationError
from portal.gateway import commit, persisting, reading
from portal.sessions import Identity
from portal.validators import is_email, is_identifier, is_payment_method, is_phone, sanitize

logger = logging.getLogger(__name__)

STUDENT_KEYS = ("phone", "student_code")

ALREADY_REGISTERED = "This student is already registered for this event."
REFERENCE_GONE = "The event or member for this registration no longer exists."


@dataclass
class BatchResult:
    created: int
    skipped: int


@dataclass
class StudentFields:
    name: str
    phone: str
    email: str
    student_code: Optional[str] = None


@dataclass
class RegistrationFields:
    student: StudentFields
    event_ids: List[str]
    payment_method: str
    transaction_id: Optional[str]


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _event_ids(payload) -> List[str]:
    ids = []
    for value in list(getattr(payload, "event_ids", None) or []) + [getattr(payload, "event_id", None)]:
        value = _text(value)
        if value is not None:
            ids.append(value.lower())
    # a set in meaning, request order kept for logging and insert order
    return list(dict.fromkeys(ids))


def validate_registration(payload, student_key: str = "phone") -> RegistrationFields:
    """Check and clean a registration payload without touching the database."""
    name = _text(payload.name)
    phone = _text(payload.phone)
    email = _text(payload.email)
    method = _text(payload.payment_method)
    code = _text(payload.student_code)
    event_ids = _event_ids(payload)

    if not (name and phone and email and method and event_ids):
        raise ValidationError("Missing required fields.")
    if student_key == "student_code" and not code:
        raise ValidationError("Missing required fields.")
    if not is_phone(phone):
        raise ValidationError("Phone must be exactly 10 digits.")
    if not is_email(email):
        raise ValidationError("Invalid email address.")
    if not all(is_identifier(event_id) for event_id in event_ids):
        raise ValidationError("Invalid event.")
    if not is_payment_method(method):
        raise ValidationError("Invalid payment method.")

    transaction_id = None
    if method == "upi":
        transaction_id = sanitize(payload.transaction_id) if payload.transaction_id is not None else ""
        if not transaction_id:
            raise ValidationError("UPI transaction ID is required.")

    clean_name = sanitize(name)
    if not clean_name:
        raise ValidationError("Missing required fields.")
    student = StudentFields(
        name=clean_name,
        phone=phone,
        email=sanitize(email).lower(),
        student_code=sanitize(code) if code else None,
    )
    return RegistrationFields(student, event_ids, method, transaction_id)


class RegistrationEngine:
    def __init__(self, db: Session, student_key: str = "phone"):
        if student_key not in STUDENT_KEYS:
            raise ValueError(f"unknown student key {student_key!r}")
        self.db = db
        self.student_key = student_key

    # -- reads --

    def _event_costs(self, event_ids: Sequence[str]) -> Dict[str, float]:
        with reading(self.db, "Failed to load events."):
            rows = self.db.query(models.Event.id, models.Event.cost).filter(models.Event.id.in_(event_ids)).all()
        costs = {row.id: row.cost for row in rows}
        if any(event_id not in costs for event_id in event_ids):
            raise NotFound("Event not found.")
        return costs

    def _already_registered(self, student_id: str, event_ids: Sequence[str]) -> Set[str]:
        with reading(self.db, "Failed to load registrations."):
            rows = (
                self.db.query(models.Registration.event_id)
                .filter(models.Registration.student_id == student_id)
                .filter(models.Registration.event_id.in_(event_ids))
                .all()
            )
        return {row.event_id for row in rows}

    def _check_claims(self, fields: StudentFields, student_id: Optional[str]):
        """Reject contact fields already owned by a different student."""
        claims = [
            (models.Student.email, fields.email, "This email is already used by another student."),
            (models.Student.phone, fields.phone, "This phone number is already used by another student."),
        ]
        if fields.student_code:
            claims.append((models.Student.student_code, fields.student_code,
                           "This student ID is already used by another student."))
        with reading(self.db, "Failed to load students."):
            for column, value, message in claims:
                q = self.db.query(models.Student.id).filter(column == value)
                if student_id is not None:
                    q = q.filter(models.Student.id != student_id)
                if q.first() is not None:
                    raise Conflict(message)

    # -- writes --

    def _upsert_student(self, fields: StudentFields) -> models.Student:
        """
        Find the student by natural key and overwrite its contact fields, or create it.

        Flushes but does not commit; the caller's commit makes it durable.
        """
        key_column = getattr(models.Student, self.student_key)
        key_value = getattr(fields, self.student_key)
        with reading(self.db, "Failed to load students."):
            student = self.db.query(models.Student).filter(key_column == key_value).first()

        self._check_claims(fields, student.id if student else None)
        if student is None:
            student = models.Student(id=models.new_id())
            self.db.add(student)
        student.name = fields.name
        student.email = fields.email
        student.phone = fields.phone
        if fields.student_code:
            student.student_code = fields.student_code

        with persisting(self.db, "This email or phone is already used by another student.",
                        "Failed to save student."):
            self.db.flush()
        return student

    def register_batch(self, actor: Identity, payload) -> BatchResult:
        fields = validate_registration(payload, self.student_key)
        costs = self._event_costs(fields.event_ids)

        student = self._upsert_student(fields.student)
        already = self._already_registered(student.id, fields.event_ids)
        to_create = [event_id for event_id in fields.event_ids if event_id not in already]
        if not to_create:
            self.db.rollback()
            raise AllAlreadyRegistered(ALREADY_REGISTERED)

        for event_id in to_create:
            self.db.add(models.Registration(
                student_id=student.id,
                event_id=event_id,
                member_id=actor.id,
                payment_method=fields.payment_method,
                transaction_id=fields.transaction_id,
                amount_paid=costs[event_id],
            ))
        commit(self.db, ALREADY_REGISTERED, "Failed to create registration.", missing=REFERENCE_GONE)

        logger.info("Member %s registered student %s for %s event(s), skipped %s",
                    actor.id, student.id, len(to_create), len(already))
        return BatchResult(created=len(to_create), skipped=len(already))

    def _get_registration(self, registration_id: str) -> models.Registration:
        with reading(self.db, "Failed to load registration."):
            registration = self.db.get(models.Registration, registration_id)
        if registration is None:
            raise NotFound("Registration not found.")
        return registration

    def update_registration(self, actor: Identity, registration_id: str, payload):
        if not is_identifier(registration_id):
            raise ValidationError("Invalid registration ID.")
        student_id = _text(payload.student_id)
        if student_id is not None and not is_identifier(student_id):
            raise ValidationError("Invalid student ID.")
        if len(_event_ids(payload)) > 1:
            raise ValidationError("Invalid event.")
        fields = validate_registration(payload, self.student_key)
        event_id = fields.event_ids[0]

        registration = self._get_registration(registration_id.lower())
        if not can_mutate(actor, registration.member_id):
            raise Forbidden("Not authorized.")
        if student_id is not None and student_id.lower() != registration.student_id:
            raise ValidationError("Student does not match this registration.")

        costs = self._event_costs([event_id])
        self._check_claims(fields.student, registration.student_id)
        if event_id != registration.event_id and self._already_registered(registration.student_id, [event_id]):
            raise Conflict(ALREADY_REGISTERED)

        student = registration.student
        student.name = fields.student.name
        student.phone = fields.student.phone
        student.email = fields.student.email
        if fields.student.student_code:
            student.student_code = fields.student.student_code

        registration.event_id = event_id
        registration.payment_method = fields.payment_method
        registration.transaction_id = fields.transaction_id
        registration.amount_paid = costs[event_id]
        commit(self.db, "This change conflicts with another record, reload and try again.",
               "Failed to update registration.", missing=REFERENCE_GONE)
        logger.info("Member %s updated registration %s", actor.id, registration.id)

    def delete_registration(self, actor: Identity, registration_id: str):
        if not is_identifier(registration_id):
            raise ValidationError("Invalid registration ID.")
        registration = self._get_registration(registration_id.lower())
        if not can_mutate(actor, registration.member_id):
            raise Forbidden("Not authorized.")
        self.db.delete(registration)
        commit(self.db, "Registration is still referenced.", "Failed to delete.")
        logger.info("Member %s deleted registration %s", actor.id, registration_id)

    def list_sales(self, actor: Identity) -> List[models.Registration]:
        q = self.db.query(models.Registration).options(
            joinedload(models.Registration.student),
            joinedload(models.Registration.event),
            joinedload(models.Registration.member),
        )
        if not actor.is_admin:
            q = q.filter(models.Registration.member_id == actor.id)
        with reading(self.db, "Failed to load sales."):
            return q.order_by(models.Registration.registered_at.desc(), models.Registration.id).all()
