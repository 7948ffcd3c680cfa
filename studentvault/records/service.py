"""Student Service - register, login, list, get, update, delete

Self-Explanatory: CRUD over the students table, built on the field pipeline, bcrypt and tokens.
Why: Keeps routers thin; every crypto decision for a record happens here.
How: Writes add the server layer to client ciphertext; reads strip it and return client
     ciphertext. The password digest never leaves this module. Concurrent updates to the same
     record are last-write-wins.
"""

from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studentvault.errors import (
    CredentialMismatch,
    EmailAlreadyRegisteredError,
    InvalidTokenError,
    StudentNotFoundError,
)
from studentvault.records.models import Student
from studentvault.security.credentials import check_password, dummy_digest, hash_password
from studentvault.security.field_pipeline import (
    SENSITIVE_FIELDS,
    FieldPipeline,
)
from studentvault.security.tokens import Identity, TokenIssuer, TokenPair
from studentvault.utils.metrics import record_auth_attempt, record_student_operation

logger = structlog.get_logger()


class StudentService:
    """One instance per request (wraps a single DB session)"""

    def __init__(self, db: Session, pipeline: FieldPipeline, issuer: TokenIssuer, bcrypt_rounds: int):
        self.db = db
        self.pipeline = pipeline
        self.issuer = issuer
        self.bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _get(self, student_id: str) -> Student:
        student = self.db.get(Student, student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    def _find_by_email(self, email: str) -> Optional[Student]:
        return self.db.execute(select(Student).where(Student.email == email)).scalar_one_or_none()

    def _view(self, student: Student) -> Dict[str, str]:
        """Row -> dict with the server layer stripped (client ciphertext only)"""
        stored = {name: getattr(student, name) for name in SENSITIVE_FIELDS}
        view = dict(self.pipeline.unprotect_fields(stored))
        view["id"] = student.id
        view["email"] = student.email
        return view

    def _commit(self, email: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            # Unique index caught a concurrent registration of the same email
            self.db.rollback()
            raise EmailAlreadyRegisteredError(email)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def register(self, fields: Dict[str, str]) -> Student:
        """Create a student from client-encrypted fields

        Args:
            fields: email (cleartext), password (client ciphertext), six PII fields (client ciphertext)

        Returns:
            Persisted Student row

        Raises:
            EmailAlreadyRegisteredError if the email exists
        """
        email = fields["email"]
        if self._find_by_email(email) is not None:
            logger.warning("Registration rejected, email exists", email=email)
            raise EmailAlreadyRegisteredError(email)

        protected = self.pipeline.protect_fields(fields)
        missing = [name for name in SENSITIVE_FIELDS if name not in protected]
        if missing:
            raise ValueError(f"missing sensitive fields: {', '.join(missing)}")

        student = Student(
            email=email,
            password=hash_password(fields["password"], self.bcrypt_rounds),
            **protected,
        )
        self.db.add(student)
        self._commit(email)

        record_student_operation("register")
        logger.info("Student registered", student_id=student.id, email=email)
        return student

    def login(self, email: str, password: str) -> Tuple[TokenPair, Dict[str, str]]:
        """Verify credentials and issue an access + refresh token

        Unknown emails are checked against a dummy digest so both failures cost one bcrypt verify.

        Raises:
            CredentialMismatch for unknown email or wrong password (no token issued)
        """
        student = self._find_by_email(email)
        try:
            check_password(password, student.password if student else dummy_digest(self.bcrypt_rounds))
            if student is None:
                raise CredentialMismatch()
        except CredentialMismatch:
            record_auth_attempt("login_failed")
            logger.warning("Login failed", email=email)
            raise

        tokens = self.issuer.issue_pair(Identity(subject=student.id, email=student.email))
        record_auth_attempt("login_success")
        logger.info("Login successful", student_id=student.id)
        return tokens, self._view(student)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair

        Raises:
            InvalidTokenError if the token is bad or its student no longer exists
        """
        identity = self.issuer.decode_refresh_token(refresh_token)
        student = self.db.get(Student, identity.subject)
        if student is None:
            logger.warning("Refresh token for deleted student", student_id=identity.subject)
            raise InvalidTokenError("Token subject no longer exists")
        logger.info("Tokens refreshed", student_id=student.id)
        return self.issuer.issue_pair(Identity(subject=student.id, email=student.email))

    def list_students(self) -> List[Dict[str, str]]:
        students = self.db.execute(select(Student).order_by(Student.created_at)).scalars().all()
        record_student_operation("list")
        return [self._view(s) for s in students]

    def get_student(self, student_id: str) -> Dict[str, str]:
        view = self._view(self._get(student_id))
        record_student_operation("get")
        return view

    def update_student(self, student_id: str, changes: Dict[str, Optional[str]]) -> Dict[str, str]:
        """Apply a partial update; None means "leave as-is"

        Each supplied PII field is re-protected on its own, a new email must be unused, and a
        new password is re-hashed.
        """
        student = self._get(student_id)

        new_email = changes.get("email")
        if new_email and new_email != student.email:
            other = self._find_by_email(new_email)
            if other is not None and other.id != student.id:
                raise EmailAlreadyRegisteredError(new_email)
            student.email = new_email

        for name, sealed in self.pipeline.protect_fields(changes).items():
            setattr(student, name, sealed)

        if changes.get("password"):
            student.password = hash_password(changes["password"], self.bcrypt_rounds)

        self._commit(student.email)
        updated = sorted(k for k, v in changes.items() if v is not None)
        record_student_operation("update")
        logger.info("Student updated", student_id=student_id, fields=updated)
        return self._view(student)

    def delete_student(self, student_id: str) -> None:
        student = self._get(student_id)
        self.db.delete(student)
        self.db.commit()
        record_student_operation("delete")
        logger.info("Student deleted", student_id=student_id)
