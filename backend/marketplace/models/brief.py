"""EventBrief ORM model — what the client asked for."""
import uuid
import enum
from sqlalchemy import Column, String, Date, DateTime, Integer, Text, JSON, Enum as SAEnum
from sqlalchemy.sql import func
from marketplace.database import Base


class EventType(str, enum.Enum):
    mariage = "mariage"
    bapteme = "bapteme"
    anniversaire = "anniversaire"
    fete_entreprise = "fete_entreprise"
    communion = "communion"
    fiancailles = "fiancailles"
    autre = "autre"


class BriefStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"


class EventBrief(Base):
    __tablename__ = "event_briefs"

    brief_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String(36), nullable=False, index=True)
    event_type = Column(SAEnum(EventType), nullable=False, default=EventType.autre)
    event_name = Column(String(255), nullable=True)
    budget_min = Column(Integer, nullable=False, default=0)
    budget_max = Column(Integer, nullable=False)
    guest_count = Column(Integer, nullable=False, default=0)
    event_date = Column(Date, nullable=True)
    event_location = Column(String(255), nullable=True)
    services_needed = Column(JSON, nullable=False, default=list)
    additional_notes = Column(Text, nullable=True)
    applied_recommendation = Column(JSON, nullable=True)
    status = Column(SAEnum(BriefStatus), nullable=False, default=BriefStatus.draft)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
