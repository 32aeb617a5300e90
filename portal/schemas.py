from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime


class RequestModel(BaseModel):
    # Phones and codes arrive as JSON numbers from some clients. Presence and
    # format are checked by the services so the messages stay stable.
    model_config = ConfigDict(coerce_numbers_to_str=True)


class LoginIn(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None


class LoginOut(BaseModel):
    token: str
    name: str
    role: str


class RegisterIn(RequestModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    student_code: Optional[str] = None
    event_id: Optional[str] = None
    event_ids: Optional[List[str]] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class RegisterOut(BaseModel):
    ok: bool = True
    count: int
    skipped: int


class SaleUpdateIn(RequestModel):
    student_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    student_code: Optional[str] = None
    event_id: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class OkOut(BaseModel):
    ok: bool = True


class MemberIn(RequestModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None


class StudentIn(RequestModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    student_code: Optional[str] = None


class EventIn(BaseModel):
    title: Optional[str] = None
    cost: Any = None


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    cost: float


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    student_code: Optional[str] = None
    name: str
    phone: str
    email: str


class MemberSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str


class MemberOut(MemberSummary):
    role: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    payment_method: str
    transaction_id: Optional[str] = None
    amount_paid: float
    registered_at: Optional[datetime] = None
    student: StudentOut
    event: EventOut
    member: MemberSummary
