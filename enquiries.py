import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from config import Settings


class EnquiryCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)
    phone: Optional[str] = None
    villa_slug: Optional[str] = None
    villa_title: Optional[str] = None
    page_url: Optional[str] = None


class Enquiry(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    email: str
    message: str
    phone: Optional[str] = None
    villa_slug: Optional[str] = None
    villa_title: Optional[str] = None
    page_url: Optional[str] = None
    status: str = "new"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def encode_component(text: str) -> str:
    # same escaping as the browser's encodeURIComponent
    return quote(text, safe="-_.!~*'()")


def whatsapp_message(villa_name: Optional[str], url: str) -> str:
    if villa_name:
        return f"Hi! I'd like to know more about {villa_name}. Here is the link: {url}"
    return f"Hi! I'm interested in renting a property in Ibiza.\n{url}"


def whatsapp_url(settings: Settings, villa_name: Optional[str] = None, url: Optional[str] = None) -> str:
    message = whatsapp_message(villa_name, url or settings.site_url)
    return f"https://wa.me/{settings.whatsapp_number}?text={encode_component(message)}"


def mailto_url(settings: Settings, enquiry: EnquiryCreate) -> str:
    title = enquiry.villa_title or "General enquiry"
    subject = f"Move2Ibiza enquiry: {title}"
    lines = [
        f"Property: {title}",
        f"URL: {enquiry.page_url or ''}",
        f"Name: {enquiry.name}",
        f"Email: {enquiry.email}",
        f"Phone: {enquiry.phone}" if enquiry.phone else "",
        "",
        enquiry.message,
    ]
    body = "\n".join(line for line in lines if line)
    return f"mailto:{settings.contact_email}?subject={encode_component(subject)}&body={encode_component(body)}"
