"""
Wire records for the messaging protocol.

Attributes are snake_case in Python and camelCase on the wire; always dump
with by_alias=True when a record leaves the process or is signed.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "forbid",
    }

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Credentials(WireModel):
    """Everything an identity holds locally. Private halves never leave the process."""
    public_sign_key: str
    private_sign_key: str
    private_encrypt_key: str
    public_encrypt_key: Optional[str] = None


class Identity(WireModel):
    """Public directory record of an identity."""
    public_sign_key: str
    public_encrypt_key: str
    name: Optional[str] = None
    alias: Optional[str] = None
    webhook: Optional[str] = None


class SignedPayload(WireModel):
    public_sign_key: str
    signature: str
    payload: dict[str, Any]


class SignedRequest(WireModel):
    payload: Any
    public_sign_key: str
    nonce: str
    auth_token: str


class StoredMessage(WireModel):
    id: str
    conversation_id: str
    payload: str
    timestamp: int


class WebhookUpdate(WireModel):
    """Body POSTed to a participant's webhook. payload is the still-encrypted envelope."""
    payload: str
    timestamp: int
    conversation_id: str


class DecipheredMessage(BaseModel):
    """
    An opened, signature-checked message: the verified sender key, the stored
    timestamp, and the message fields (e.g. type, text) as extra attributes.
    """
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "allow",
    }

    public_sign_key: str
    timestamp: int
