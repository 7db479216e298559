"""Inbound WhatsApp Cloud API webhook payload."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppProfile(BaseModel):
    name: str


class WhatsAppContact(BaseModel):
    profile: WhatsAppProfile
    wa_id: str


class WhatsAppText(BaseModel):
    body: str


class WhatsAppMessage(BaseModel):
    """A single inbound message; ``from`` is the sender in E.164 without ``+``."""

    from_: str = Field(alias="from")
    id: str
    timestamp: str
    type: str
    text: Optional[WhatsAppText] = None

    model_config = ConfigDict(populate_by_name=True)


class WhatsAppMetadata(BaseModel):
    display_phone_number: str
    phone_number_id: str


class WhatsAppValue(BaseModel):
    messaging_product: str
    metadata: WhatsAppMetadata
    contacts: Optional[List[WhatsAppContact]] = None
    messages: Optional[List[WhatsAppMessage]] = None


class WhatsAppChange(BaseModel):
    field: str
    value: WhatsAppValue


class WhatsAppEntry(BaseModel):
    id: str
    changes: List[WhatsAppChange]


class WhatsAppWebhookPayload(BaseModel):
    object: str
    entry: List[WhatsAppEntry]

    model_config = ConfigDict(extra="ignore")


__all__ = [
    "WhatsAppChange",
    "WhatsAppContact",
    "WhatsAppEntry",
    "WhatsAppMessage",
    "WhatsAppMetadata",
    "WhatsAppProfile",
    "WhatsAppText",
    "WhatsAppValue",
    "WhatsAppWebhookPayload",
]
