"""Student Router - register, login, refresh + protected CRUD

Endpoints:
- POST /register: Create student (public)
- POST /login: Verify password, issue access + refresh tokens (public)
- POST /refresh: New token pair from a refresh token (public)
- GET /students: List students (bearer token)
- GET /student/{student_id}: Get one student (bearer token)
- PUT /student/{student_id}: Partial update (bearer token)
- DELETE /student/{student_id}: Delete (bearer token)
All PII in and out is client-tier ciphertext; the server layer is added/removed in StudentService.
"""

from typing import Iterator

from fastapi import APIRouter, Depends, Request
import structlog

from studentvault.governance.auth import get_current_user
from studentvault.records.schemas import (
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    StudentListResponse,
    StudentOut,
    StudentResponse,
    StudentSummary,
    TokenResponse,
    UpdateRequest,
)
from studentvault.records.service import StudentService
from studentvault.security.tokens import Identity

router = APIRouter()
logger = structlog.get_logger()


def get_student_service(request: Request) -> Iterator[StudentService]:
    """Per-request service bound to a fresh DB session"""
    state = request.app.state
    with state.database.session() as db:
        yield StudentService(db, state.pipeline, state.token_issuer, state.keys.bcrypt_rounds)


@router.post("/register", response_model=MessageResponse, status_code=201)
def register_student(payload: RegisterRequest, service: StudentService = Depends(get_student_service)):
    """Register a student

    Args:
        payload: email + client-encrypted PII and password

    Returns:
        Success message (201); 409 if the email is taken
    """
    service.register(payload.model_dump())
    return MessageResponse(message="Student registered successfully")


@router.post("/login", response_model=TokenResponse)
def login_student(payload: LoginRequest, service: StudentService = Depends(get_student_service)):
    """Login with email + client-encrypted password; 401 on mismatch"""
    tokens, view = service.login(payload.email, payload.password)
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        data=StudentSummary(id=view["id"], full_name=view["full_name"], email=view["email"]),
    )


@router.post("/refresh", response_model=TokenResponse)
def refresh_tokens(payload: RefreshRequest, service: StudentService = Depends(get_student_service)):
    tokens = service.refresh(payload.refresh_token)
    return TokenResponse(
        message="Tokens refreshed",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.get("/students", response_model=StudentListResponse)
def list_students(
    user: Identity = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    students = service.list_students()
    logger.info("Students listed", count=len(students), user_id=user.subject)
    return StudentListResponse(data=[StudentOut(**s) for s in students])


@router.get("/student/{student_id}", response_model=StudentResponse)
def get_student(
    student_id: str,
    user: Identity = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    return StudentResponse(data=StudentOut(**service.get_student(student_id)))


@router.put("/student/{student_id}", response_model=StudentResponse)
def update_student(
    student_id: str,
    payload: UpdateRequest,
    user: Identity = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    """Partial update; omitted fields stay as stored"""
    view = service.update_student(student_id, payload.model_dump())
    return StudentResponse(data=StudentOut(**view))


@router.delete("/student/{student_id}", response_model=MessageResponse)
def delete_student(
    student_id: str,
    user: Identity = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    service.delete_student(student_id)
    logger.info("Student deleted via API", student_id=student_id, user_id=user.subject)
    return MessageResponse(message="Student deleted successfully")
