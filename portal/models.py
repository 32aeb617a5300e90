import uuid

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship

from portal.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Member(Base):
    __tablename__ = "members"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(500), nullable=False)
    email = Column(String(254), nullable=False, unique=True, index=True)
    password_hash = Column(String(128), nullable=False)
    role = Column(String(10), nullable=False, default="member")
    phone = Column(String(10), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (CheckConstraint("role IN ('admin', 'member')", name="ck_members_role"),)


class Student(Base):
    __tablename__ = "students"
    id = Column(String(36), primary_key=True, default=new_id)
    student_code = Column(String(500), nullable=True, unique=True, index=True)
    name = Column(String(500), nullable=False)
    phone = Column(String(10), nullable=False, unique=True, index=True)
    email = Column(String(254), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Event(Base):
    __tablename__ = "events"
    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(500), nullable=False)
    cost = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0.0)

    __table_args__ = (CheckConstraint("cost >= 0", name="ck_events_cost"),)


class Registration(Base):
    __tablename__ = "registrations"
    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    member_id = Column(String(36), ForeignKey("members.id"), nullable=False, index=True)
    payment_method = Column(String(10), nullable=False)
    transaction_id = Column(String(500), nullable=True)
    amount_paid = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    registered_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("Student")
    event = relationship("Event")
    member = relationship("Member")

    __table_args__ = (
        UniqueConstraint("student_id", "event_id", name="uq_registrations_student_event"),
        CheckConstraint("payment_method IN ('cash', 'upi')", name="ck_registrations_payment_method"),
    )
