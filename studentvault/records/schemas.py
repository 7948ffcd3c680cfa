"""Request/response models for the student API

JSON uses the front end's camelCase names (fullName, phoneNumber, ...). PII values here are
always client-tier ciphertext, never plaintext.
"""

from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, field_validator

from studentvault.security.client_cipher import is_client_envelope
from studentvault.security.credentials import BCRYPT_MAX_BYTES


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("email is not a valid address")
    return v


Email = Annotated[str, AfterValidator(_normalize_email)]


def _require_client_envelope(v: str) -> str:
    if not is_client_envelope(v):
        raise ValueError("expected client-tier ciphertext")
    return v


# PII must arrive already encrypted by the client tier, so plaintext is refused here
ClientEnvelope = Annotated[str, AfterValidator(_require_client_envelope)]
PasswordCiphertext = Annotated[str, StringConstraints(min_length=1, max_length=BCRYPT_MAX_BYTES)]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(CamelModel):
    full_name: ClientEnvelope = Field(..., alias="fullName")
    email: Email
    phone_number: ClientEnvelope = Field(..., alias="phoneNumber")
    date_of_birth: ClientEnvelope = Field(..., alias="dateOfBirth")
    gender: ClientEnvelope
    address: ClientEnvelope
    course_enrolled: ClientEnvelope = Field(..., alias="courseEnrolled")
    password: PasswordCiphertext  # client-tier fixed-IV ciphertext


class UpdateRequest(CamelModel):
    """Partial update: omitted (or empty) fields are left untouched"""
    full_name: Optional[ClientEnvelope] = Field(None, alias="fullName")
    email: Optional[Email] = None
    phone_number: Optional[ClientEnvelope] = Field(None, alias="phoneNumber")
    date_of_birth: Optional[ClientEnvelope] = Field(None, alias="dateOfBirth")
    gender: Optional[ClientEnvelope] = None
    address: Optional[ClientEnvelope] = None
    course_enrolled: Optional[ClientEnvelope] = Field(None, alias="courseEnrolled")
    password: Optional[PasswordCiphertext] = None

    @field_validator("*", mode="before")
    @classmethod
    def empty_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LoginRequest(BaseModel):
    email: Email
    password: PasswordCiphertext


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class StudentOut(CamelModel):
    id: str
    full_name: str = Field(..., alias="fullName")
    email: str
    phone_number: str = Field(..., alias="phoneNumber")
    date_of_birth: str = Field(..., alias="dateOfBirth")
    gender: str
    address: str
    course_enrolled: str = Field(..., alias="courseEnrolled")


class StudentSummary(CamelModel):
    id: str
    full_name: str = Field(..., alias="fullName")
    email: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class StudentResponse(BaseModel):
    success: bool = True
    data: StudentOut


class StudentListResponse(BaseModel):
    success: bool = True
    data: List[StudentOut]


class TokenResponse(CamelModel):
    success: bool = True
    message: str = "Login successful"
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    data: Optional[StudentSummary] = None
