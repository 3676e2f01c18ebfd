"""
Wire-format models for the bridge and command endpoints

Field names match the relay server byte-for-byte; do not rename.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class EncryptedPayload(BaseModel):
    """AES-GCM sealed blob: base64 12-byte nonce, base64 ciphertext with the 16-byte tag appended"""
    nonce: str
    ciphertext: str


class CommandEnvelope(BaseModel):
    """One logical remote operation, independent of transport encryption"""
    command: str
    method: str = "GET"
    wait_time: int = 2
    body: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        # body is omitted entirely when empty
        data: Dict[str, Any] = {
            "command": self.command,
            "method": self.method,
            "wait_time": self.wait_time,
        }
        if self.body:
            data["body"] = self.body
        return data


class EncryptedCommandRequest(BaseModel):
    encrypted: bool = True
    client_id: str
    encrypted_payload: EncryptedPayload


class EstablishSessionRequest(BaseModel):
    client_id: str
    public_key: str


class EstablishSessionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    encrypted_session_key: str


class BridgeLoginRequest(BaseModel):
    email: str
    password: str


class BridgeLoginResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jwt_token: str
