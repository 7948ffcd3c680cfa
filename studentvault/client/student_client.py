"""StudentVault API Client - the client tier in Python

Self-Explanatory: Talks to the student API the way the browser front end does.
Why: PII must be encrypted before it leaves the caller; the server only ever sees ciphertext.
How: httpx.AsyncClient; ClientFieldCipher seals PII, encrypt_password() covers the password,
     responses are decrypted back to plaintext. Access token from login() is sent as Bearer.

Flow:
1. register(profile, password) -> PII + password encrypted client-side, POST /api/register
2. login(email, password) -> same deterministic password ciphertext, tokens kept on the client
3. list/get -> server returns client ciphertext, decrypted here
4. update(id, changes) -> only the supplied fields are encrypted and sent
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
import structlog
from starlette.config import Config

from studentvault.config import FIELD_KEY_HEX_LENGTH
from studentvault.errors import KeyConfigurationError
from studentvault.security.client_cipher import ClientFieldCipher
from studentvault.security.field_pipeline import SENSITIVE_FIELDS

logger = structlog.get_logger()

# Python field name -> wire (camelCase) name
WIRE_NAMES = {
    "full_name": "fullName",
    "phone_number": "phoneNumber",
    "date_of_birth": "dateOfBirth",
    "gender": "gender",
    "address": "address",
    "course_enrolled": "courseEnrolled",
}


class StudentClientError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, detail):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


@dataclass
class StudentProfile:
    """Plaintext view of a student (client side only)"""
    full_name: str
    email: str
    phone_number: str
    date_of_birth: str
    gender: str
    address: str
    course_enrolled: str
    id: Optional[str] = None


def load_client_cipher(config: Optional[Config] = None) -> ClientFieldCipher:
    """Build the client cipher from CLIENT_FIELD_KEY (env / .env); fails fast if missing"""
    config = config or Config(".env")
    hex_key = config("CLIENT_FIELD_KEY", default="")
    if len(hex_key) != FIELD_KEY_HEX_LENGTH:
        raise KeyConfigurationError("CLIENT_FIELD_KEY", f"expected {FIELD_KEY_HEX_LENGTH} hex characters")
    return ClientFieldCipher.from_hex_key(hex_key)


class StudentClient:
    """Async client for the student API"""

    def __init__(
        self,
        base_url: str,
        cipher: ClientFieldCipher,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30,
    ):
        self.cipher = cipher
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "StudentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------ #
    # Encryption helpers
    # ------------------------------------------------------------------ #

    def _seal(self, fields: Dict[str, Optional[str]]) -> Dict[str, str]:
        """Encrypt the sensitive fields present, keyed by wire name"""
        return {
            WIRE_NAMES[name]: self.cipher.encrypt(fields[name])
            for name in SENSITIVE_FIELDS
            if fields.get(name) is not None
        }

    def _open(self, data: Dict[str, str]) -> StudentProfile:
        opened = {name: self.cipher.decrypt(data[WIRE_NAMES[name]]) for name in SENSITIVE_FIELDS}
        return StudentProfile(id=data.get("id"), email=data["email"], **opened)

    # ------------------------------------------------------------------ #
    # HTTP helpers
    # ------------------------------------------------------------------ #

    def _auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Dict:
        try:
            response = await self._http.request(method, path, headers=self._auth_headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("StudentVault request failed", method=method, path=path, error=str(e))
            raise

        if response.is_error:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.warning("StudentVault API error", method=method, path=path, status=response.status_code)
            raise StudentClientError(response.status_code, detail)
        return response.json()

    # ------------------------------------------------------------------ #
    # API
    # ------------------------------------------------------------------ #

    async def register(self, profile: StudentProfile, password: str) -> Dict:
        """Register a new student; PII and password never leave in plaintext

        Raises:
            ValueError if the password is over MAX_PASSWORD_BYTES (bcrypt reads 72 bytes of ciphertext)
        """
        body = self._seal(vars(profile))
        body["email"] = profile.email
        body["password"] = self.cipher.encrypt_password(password)
        return await self._request("POST", "/api/register", json=body)

    async def login(self, email: str, password: str) -> Dict:
        """Login and keep the issued tokens for later calls"""
        data = await self._request(
            "POST", "/api/login",
            json={"email": email, "password": self.cipher.encrypt_password(password)},
        )
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        logger.info("Logged in", email=email)
        return data

    async def refresh(self) -> None:
        """Swap the stored refresh token for a new pair"""
        if not self.refresh_token:
            raise StudentClientError(401, "No refresh token; call login() first")
        data = await self._request("POST", "/api/refresh", json={"refreshToken": self.refresh_token})
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]

    async def list_students(self) -> List[StudentProfile]:
        data = await self._request("GET", "/api/students")
        return [self._open(item) for item in data["data"]]

    async def get_student(self, student_id: str) -> StudentProfile:
        data = await self._request("GET", f"/api/student/{student_id}")
        return self._open(data["data"])

    async def update_student(self, student_id: str, password: Optional[str] = None,
                             **changes: Optional[str]) -> StudentProfile:
        """Update only the given fields, e.g. update_student(id, address="...")"""
        unknown = set(changes) - set(SENSITIVE_FIELDS) - {"email"}
        if unknown:
            raise ValueError(f"Unknown student fields: {', '.join(sorted(unknown))}")

        body = self._seal(changes)
        if changes.get("email"):
            body["email"] = changes["email"]
        if password:
            body["password"] = self.cipher.encrypt_password(password)
        data = await self._request("PUT", f"/api/student/{student_id}", json=body)
        return self._open(data["data"])

    async def delete_student(self, student_id: str) -> Dict:
        return await self._request("DELETE", f"/api/student/{student_id}")
