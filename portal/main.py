# portal/main.py
from contextlib import asynccontextmanager
from typing import List, Optional
import os
import logging

from fastapi import FastAPI, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal import admin, auth, database, schemas
from portal.errors import PortalError, Unauthorized, ValidationError
from portal.registration import STUDENT_KEYS, RegistrationEngine
from portal.sessions import Identity, SessionStore
from portal.validators import is_email

# config / env
# DATABASE_URL, STUDENT_KEY and SESSION_TTL_HOURS are read at startup so each app start sees the current env
DEFAULT_DATABASE_URL = "postgresql://postgres:postgres@db:5432/sales_portal"
DEFAULT_STUDENT_KEY = "phone"
DEFAULT_SESSION_TTL_HOURS = "12"
PUBLIC_DIR = os.getenv("PUBLIC_DIR", "public")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

# logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sales-portal")


def _bootstrap_admin():
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        return
    db = database.SessionLocal()
    try:
        admin.ensure_admin(db, email, password, os.getenv("ADMIN_NAME", "Administrator"))
    finally:
        db.close()


# Startup: initialize DB, bootstrap the first admin and start the session store
@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.student_key = os.getenv("STUDENT_KEY", DEFAULT_STUDENT_KEY)
    if app.state.student_key not in STUDENT_KEYS:
        raise ValueError(f"STUDENT_KEY must be one of {STUDENT_KEYS}, got {app.state.student_key!r}")
    logger.info("Initializing DB and session store...")
    database.init_db(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))
    _bootstrap_admin()
    ttl_hours = float(os.getenv("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS))
    app.state.sessions = SessionStore(ttl=ttl_hours * 60 * 60)
    app.state.sessions.start()
    logger.info("Startup complete (student key: %s).", app.state.student_key)
    yield
    logger.info("Shutting down...")
    app.state.sessions.stop()
    database.dispose_db()


app = FastAPI(title="Sales Portal", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Errors are always {"error": message}
@app.exception_handler(PortalError)
def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request body."})


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def current_identity(x_session: Optional[str] = Header(None),
                     sessions: SessionStore = Depends(get_sessions)) -> Identity:
    identity = sessions.resolve(x_session)
    if identity is None:
        raise Unauthorized("Not logged in.")
    return identity


def admin_identity(actor: Identity = Depends(current_identity)) -> Identity:
    admin.require_admin(actor)
    return actor


def get_engine(request: Request, db: Session = Depends(get_db)) -> RegistrationEngine:
    return RegistrationEngine(db, request.app.state.student_key)


# Service info and health endpoints; the banner also answers at / when no front-end is mounted
@app.get("/api")
def root():
    return {"service": "Sales Portal", "status": "running", "endpoints": ["/api/events", "/api/register", "/api/sales", "/docs"]}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception("Health check failed: %s", e)
        return JSONResponse(status_code=503, content={"error": "Database unreachable"})
    return {"status": "ok"}


# Auth
@app.post("/api/login", response_model=schemas.LoginOut)
def login(body: schemas.LoginIn, db: Session = Depends(get_db), sessions: SessionStore = Depends(get_sessions)):
    if not body.email or not body.password:
        raise ValidationError("Missing fields.")
    if not is_email(body.email):
        raise ValidationError("Invalid email.")
    identity = auth.authenticate(db, body.email, body.password)
    token = sessions.create(identity)
    logger.info("Member %s logged in", identity.id)
    return schemas.LoginOut(token=token, name=identity.name, role=identity.role)


@app.post("/api/logout", response_model=schemas.OkOut)
def logout(x_session: Optional[str] = Header(None), actor: Identity = Depends(current_identity),
           sessions: SessionStore = Depends(get_sessions)):
    sessions.revoke(x_session)
    logger.info("Member %s logged out", actor.id)
    return schemas.OkOut()


# Events
@app.get("/api/events", response_model=List[schemas.EventOut])
def list_events(actor: Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return [schemas.EventOut.model_validate(e) for e in admin.list_events(db)]


@app.post("/api/events", response_model=schemas.EventOut, status_code=201)
def create_event(body: schemas.EventIn, actor: Identity = Depends(admin_identity), db: Session = Depends(get_db)):
    return schemas.EventOut.model_validate(admin.create_event(db, body))


@app.put("/api/events/{event_id}", response_model=schemas.EventOut)
def update_event(event_id: str, body: schemas.EventIn, actor: Identity = Depends(admin_identity),
                 db: Session = Depends(get_db)):
    return schemas.EventOut.model_validate(admin.update_event(db, event_id, body))


@app.delete("/api/events/{event_id}", response_model=schemas.OkOut)
def delete_event(event_id: str, actor: Identity = Depends(admin_identity), db: Session = Depends(get_db)):
    admin.delete_event(db, event_id)
    return schemas.OkOut()


# Registrations
@app.post("/api/register", response_model=schemas.RegisterOut)
def register(body: schemas.RegisterIn, actor: Identity = Depends(current_identity),
             engine: RegistrationEngine = Depends(get_engine)):
    result = engine.register_batch(actor, body)
    return schemas.RegisterOut(count=result.created, skipped=result.skipped)


@app.get("/api/sales", response_model=List[schemas.SaleOut])
def list_sales(actor: Identity = Depends(current_identity), engine: RegistrationEngine = Depends(get_engine)):
    return [schemas.SaleOut.model_validate(r) for r in engine.list_sales(actor)]


@app.put("/api/sales/{registration_id}", response_model=schemas.OkOut)
def update_sale(registration_id: str, body: schemas.SaleUpdateIn, actor: Identity = Depends(current_identity),
                engine: RegistrationEngine = Depends(get_engine)):
    engine.update_registration(actor, registration_id, body)
    return schemas.OkOut()


@app.delete("/api/sales/{registration_id}", response_model=schemas.OkOut)
def delete_sale(registration_id: str, actor: Identity = Depends(current_identity),
                engine: RegistrationEngine = Depends(get_engine)):
    engine.delete_registration(actor, registration_id)
    return schemas.OkOut()


# Members (admin)
@app.get("/api/members", response_model=List[schemas.MemberOut])
def list_members(actor: Identity = Depends(admin_identity), db: Session = Depends(get_db)):
    return [schemas.MemberOut.model_validate(m) for m in admin.list_members(db)]


@app.post("/api/members", response_model=schemas.MemberOut, status_code=201)
def create_member(body: schemas.MemberIn, actor: Identity = Depends(admin_identity), db: Session = Depends(get_db)):
    return schemas.MemberOut.model_validate(admin.create_member(db, body))


@app.put("/api/members/{member_id}", response_model=schemas.MemberOut)
def update_member(member_id: str, body: schemas.MemberIn, actor: Identity = Depends(admin_identity),
                  db: Session = Depends(get_db)):
    return schemas.MemberOut.model_validate(admin.update_member(db, actor, member_id, body))


@app.delete("/api/members/{member_id}", response_model=schemas.OkOut)
def delete_member(member_id: str, actor: Identity = Depends(admin_identity), db: Session = Depends(get_db),
                  sessions: SessionStore = Depends(get_sessions)):
    admin.delete_member(db, actor, member_id)
    revoked = sessions.revoke_identity(member_id.lower())
    if revoked:
        logger.info("Revoked %s session(s) of deleted member %s", revoked, member_id)
    return schemas.OkOut()


# Students (admin)
@app.get("/api/students", response_model=List[schemas.StudentOut])
def list_students(actor: Identity = Depends(admin_identity), db: Session = Depends(get_db)):
    return [schemas.StudentOut.model_validate(s) for s in admin.list_students(db)]


@app.put("/api/students/{student_id}", response_model=schemas.StudentOut)
def update_student(student_id: str, body: schemas.StudentIn, actor: Identity = Depends(admin_identity),
                   db: Session = Depends(get_db)):
    return schemas.StudentOut.model_validate(admin.update_student(db, student_id, body))


# Front-end, mounted last so the API routes win
if os.path.isdir(PUBLIC_DIR):
    app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")
else:
    app.add_api_route("/", root, methods=["GET"], include_in_schema=False)
