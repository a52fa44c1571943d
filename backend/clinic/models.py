from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# Columns that are stored as (encrypted_<name>, <name>_iv) pairs
SENSITIVE_FIELDS = ("notes", "diagnosis", "treatment_plan", "attention_points")


class ConsultationStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CreateConsultationIn(BaseModel):
    appointment_id: int
    notes: Optional[str] = Field(default=None, description="Encrypted at rest")
    diagnosis: Optional[str] = Field(default=None, description="Encrypted at rest")
    treatment_plan: Optional[str] = Field(default=None, description="Encrypted at rest")
    attention_points: Optional[str] = Field(default=None, description="Encrypted at rest")
    status: Optional[ConsultationStatus] = None


class UpdateConsultationIn(BaseModel):
    """Only fields present in the payload are touched; an explicit null clears a field."""
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    attention_points: Optional[str] = None
    status: Optional[ConsultationStatus] = None


class AppointmentOut(BaseModel):
    id: int
    appointment_date: date
    appointment_time: Optional[str] = None
    status: AppointmentStatus
    patient_id: int
    patient_name: Optional[str] = None


class ConsultationOut(BaseModel):
    id: int
    appointment_id: int
    appointment: Optional[AppointmentOut] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    attention_points: Optional[str] = None
    status: ConsultationStatus
    professional_id: int
    created_at: datetime
    updated_at: datetime


class ConsultationHistoryItem(BaseModel):
    formatted_date: str
    consultation: ConsultationOut


class PatientConsultationHistoryOut(BaseModel):
    patient_id: int
    patient_name: str
    consultation_history: list[ConsultationHistoryItem]
