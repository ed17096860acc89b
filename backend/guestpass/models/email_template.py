from dataclasses import dataclass
from sqlalchemy import Column, String, Text
from guestpass.db.base import Base, BaseModel


class EmailTemplateRecord(Base, BaseModel):
    __tablename__ = "email_templates"

    key = Column(String, primary_key=True, default="invitation")
    subject = Column(String, nullable=False)
    image_url = Column(String, nullable=False, default="")
    body = Column(Text, nullable=False)


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    image_url: str
    body: str


DEFAULT_INVITATION_TEMPLATE = EmailTemplate(
    subject="You are invited: Velana Awards 2026",
    image_url="https://images.unsplash.com/photo-1540206351-d6465b3ac5c1?q=80&w=2832",
    body=(
        "<p>Dear {name},</p>"
        "<p>We are honored to invite you to the Velana Awards 2026. "
        "Join us for a night of celebration at Crossroads Maldives.</p>"
        "<p>Please confirm your attendance by clicking the button below.</p>"
    ),
)
