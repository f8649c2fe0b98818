from datetime import datetime
import enum

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leaddesk.core.database import Base, utcnow


class CallDirection(str, enum.Enum):
    outbound = "outbound"
    inbound = "inbound"


class CallOutcome(str, enum.Enum):
    no_answer = "no_answer"
    wrong_number = "wrong_number"
    gatekeeper = "gatekeeper"
    busy = "busy"
    voicemail = "voicemail"
    connected = "connected"
    interested = "interested"
    qualified = "qualified"
    not_interested = "not_interested"
    callback = "callback"
    appointment_set = "appointment_set"
    # Set by the provider status callback, not by agents.
    completed = "completed"


class Call(Base):
    __tablename__ = "calls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True, nullable=False)
    lead_id: Mapped[int | None] = mapped_column(ForeignKey("leads.id"), index=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), index=True)
    phone_number: Mapped[str] = mapped_column(String(40), default="", nullable=False)
    direction: Mapped[CallDirection] = mapped_column(Enum(CallDirection), default=CallDirection.outbound, nullable=False)
    # Raw provider status (pending, initiated, ringing, in-progress, completed, busy, failed, ...).
    status: Mapped[str] = mapped_column(String(40), default="pending", nullable=False)
    outcome: Mapped[CallOutcome | None] = mapped_column(Enum(CallOutcome))
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    provider_call_sid: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True, nullable=False)
