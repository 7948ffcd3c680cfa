"""Field Pipeline - Plaintext -> ClientCiphertext -> ServerCiphertext

Self-Explanatory: Names the two encryption stages so the order cannot be mixed up.
Why: PII is double encrypted; the server must only ever add/remove the outer layer.
How: Distinct NewTypes per stage; each stage wraps one cipher and is swappable on its own.

Flow:
    browser/client:  seal-side  Plaintext --ClientStage--> ClientCiphertext
    server (write):  protect    ClientCiphertext --ServerStage--> ServerCiphertext
    server (read):   unprotect  ServerCiphertext --ServerStage--> ClientCiphertext
    browser/client:  open-side  ClientCiphertext --ClientStage--> Plaintext
"""

from typing import Dict, Mapping, NewType, Optional

from studentvault.security.client_cipher import ClientFieldCipher
from studentvault.security.key_manager import KeyContext
from studentvault.security.server_cipher import ServerFieldCipher

ClientCiphertext = NewType("ClientCiphertext", str)
ServerCiphertext = NewType("ServerCiphertext", str)

# Email is not listed: it stays cleartext as the lookup key
SENSITIVE_FIELDS = (
    "full_name",
    "phone_number",
    "date_of_birth",
    "gender",
    "address",
    "course_enrolled",
)


class ClientStage:
    """Inner layer: plaintext <-> client ciphertext"""

    def __init__(self, cipher: ClientFieldCipher):
        self.cipher = cipher

    def seal(self, plaintext: str) -> ClientCiphertext:
        return ClientCiphertext(self.cipher.encrypt(plaintext))

    def open(self, ciphertext: ClientCiphertext) -> str:
        return self.cipher.decrypt(ciphertext)


class ServerStage:
    """Outer layer: client ciphertext <-> server ciphertext"""

    def __init__(self, cipher: ServerFieldCipher):
        self.cipher = cipher

    def seal(self, ciphertext: ClientCiphertext) -> ServerCiphertext:
        return ServerCiphertext(self.cipher.encrypt(ciphertext))

    def open(self, ciphertext: ServerCiphertext) -> ClientCiphertext:
        return ClientCiphertext(self.cipher.decrypt(ciphertext))


class FieldPipeline:
    """Composition of both stages, client layer always innermost

    The server process only needs protect/unprotect; seal/open are for the client tier
    and for tests that exercise the full round trip.
    """

    def __init__(self, client: Optional[ClientStage], server: ServerStage):
        self.client = client
        self.server = server

    def seal(self, plaintext: str) -> ServerCiphertext:
        return self.protect(self._client_stage().seal(plaintext))

    def open(self, sealed: ServerCiphertext) -> str:
        return self._client_stage().open(self.unprotect(sealed))

    def protect(self, ciphertext: ClientCiphertext) -> ServerCiphertext:
        return self.server.seal(ciphertext)

    def unprotect(self, sealed: ServerCiphertext) -> ClientCiphertext:
        return self.server.open(sealed)

    def protect_fields(self, fields: Mapping[str, Optional[str]]) -> Dict[str, ServerCiphertext]:
        """Add the server layer to every sensitive field present (None = not supplied)"""
        return {
            name: self.protect(ClientCiphertext(fields[name]))
            for name in SENSITIVE_FIELDS
            if fields.get(name) is not None
        }

    def unprotect_fields(self, fields: Mapping[str, str]) -> Dict[str, ClientCiphertext]:
        """Strip the server layer from every sensitive field present"""
        return {
            name: self.unprotect(ServerCiphertext(fields[name]))
            for name in SENSITIVE_FIELDS
            if fields.get(name) is not None
        }

    def _client_stage(self) -> ClientStage:
        if self.client is None:
            raise RuntimeError("FieldPipeline has no client stage configured")
        return self.client


def build_pipeline(keys: KeyContext) -> FieldPipeline:
    """Wire both stages from the key context (client stage only if its key is configured)"""
    client = None
    if keys.client_passphrase:
        client = ClientStage(ClientFieldCipher(keys.client_passphrase, keys.client_password_key))
    server = ServerStage(ServerFieldCipher(keys.server_key, keys.server_mac_key))
    return FieldPipeline(client, server)
