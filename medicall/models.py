import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import Column, DateTime, JSON
from sqlmodel import SQLModel, Field


_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Category(str, Enum):
    MEDICO = "MEDICO"
    ADMINISTRATIVO = "ADMINISTRATIVO"
    HOSPITAL = "HOSPITAL"


class Classification(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class Outcome(str, Enum):
    SEGUIMIENTO = "SEGUIMIENTO"
    COTIZACION = "COTIZACIÓN"
    INTERESADO = "INTERESADO"
    PROGRAMAR_PROCEDIMIENTO = "PROGRAMAR PROCEDIMIENTO"
    PLANEADA = "PLANEADA"
    CITA = "CITA"
    AUSENTE = "AUSENTE"
    COMPROMISO = "COMPROMISO"


# resultados que el flujo de reporte puede asignar
REPORTABLE_OUTCOMES = (
    Outcome.SEGUIMIENTO,
    Outcome.COTIZACION,
    Outcome.INTERESADO,
    Outcome.PROGRAMAR_PROCEDIMIENTO,
    Outcome.AUSENTE,
)


class VisitStatus(str, Enum):
    PLANNED = "planned"
    COMPLETED = "completed"


class Priority(str, Enum):
    ALTA = "ALTA"
    MEDIA = "MEDIA"
    BAJA = "BAJA"


class NextStepType(str, Enum):
    LLAMADA = "LLAMADA"
    WHATSAPP = "WHATSAPP"
    VISITA = "VISITA"
    EMAIL = "EMAIL"


class TimeOffReason(str, Enum):
    VACACIONES = "VACACIONES"
    INCAPACIDAD = "INCAPACIDAD"
    JUNTA = "JUNTA"
    PERMISO = "PERMISO"
    ADMINISTRATIVO = "ADMINISTRATIVO"


class TimeOffDuration(str, Enum):
    SHORT = "2 A 4 HRS"
    LONG = "6 A 8 HRS"
    ALL_DAY = "TODO EL DÍA"


class ProcedureStatus(str, Enum):
    SCHEDULED = "scheduled"
    PERFORMED = "performed"


class PaymentType(str, Enum):
    DIRECTO = "DIRECTO"
    ASEGURADORA = "ASEGURADORA"


class ActivityType(str, Enum):
    VISITA = "VISITA"
    CITA = "CITA"
    AUSENCIA = "AUSENCIA"


class UserRole(str, Enum):
    ADMIN = "admin"
    EXECUTIVE = "executive"


WEEKDAYS = ("LUNES", "MARTES", "MIÉRCOLES", "JUEVES", "VIERNES", "SÁBADO", "DOMINGO")


# ---- Modelos de intercambio (JSON camelCase, igual que la API) ----

class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ScheduleSlot(WireModel):
    day: str
    time: str = ""
    active: bool = False


def empty_schedule() -> list[ScheduleSlot]:
    return [ScheduleSlot(day=d) for d in WEEKDAYS]


class Visit(WireModel):
    id: str
    date: date
    time: Optional[str] = None
    note: str = ""
    objective: Optional[str] = None
    follow_up: Optional[str] = None
    outcome: Outcome
    status: VisitStatus = VisitStatus.PLANNED
    priority: Optional[Priority] = None
    # relevancia comercial
    materials_delivered: Optional[str] = None
    interest_level: Optional[int] = PydanticField(default=None, ge=1, le=5)
    next_step_type: Optional[NextStepType] = None

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, ""):
            return None
        if not _TIME_RE.match(value):
            raise ValueError(f"hora inválida: {value!r} (se espera HH:MM)")
        return value

    @property
    def is_locked(self) -> bool:
        return self.outcome == Outcome.CITA


class Contact(WireModel):
    """
    Médico, hospital o contacto administrativo. Las visitas le pertenecen:
    borrar el contacto borra su historial.
    """
    id: str
    category: Category = Category.MEDICO
    executive: str = "SIN ASIGNAR"
    name: str
    specialty: Optional[str] = None
    sub_specialty: Optional[str] = None
    address: str = ""
    hospital: Optional[str] = None
    office_number: Optional[str] = None
    floor: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    cedula: Optional[str] = None
    birth_date: Optional[str] = None
    classification: Optional[Classification] = Classification.C
    social_style: Optional[str] = None
    attitudinal_segment: Optional[str] = None
    schedule: list[ScheduleSlot] = PydanticField(default_factory=empty_schedule)
    important_notes: Optional[str] = None
    is_insurance_doctor: bool = False
    visits: list[Visit] = PydanticField(default_factory=list)

    def sorted_visits(self) -> list[Visit]:
        return sorted(self.visits, key=lambda v: (v.date, v.time or ""))


class TimeOffEvent(WireModel):
    id: str
    executive: str
    start_date: date
    end_date: date
    duration: TimeOffDuration = TimeOffDuration.ALL_DAY
    reason: TimeOffReason = TimeOffReason.PERMISO
    notes: str = ""

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate no puede ser anterior a startDate")
        return self

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Procedure(WireModel):
    id: str
    date: date
    time: Optional[str] = None
    hospital: Optional[str] = None
    doctor_id: str  # referencia débil a Contact.id
    doctor_name: str = ""
    procedure_type: str = ""
    payment_type: PaymentType = PaymentType.DIRECTO
    cost: Optional[float] = None
    commission: Optional[float] = None
    technician: Optional[str] = None
    notes: str = ""
    status: ProcedureStatus = ProcedureStatus.SCHEDULED


class User(WireModel):
    name: str
    role: UserRole = UserRole.EXECUTIVE


# ---- Almacén de documentos (API remota) ----

def utc_now() -> datetime:
    # siempre con zona horaria: las columnas no aceptan datetimes naive
    return datetime.now(timezone.utc)


class ContactDocument(SQLModel, table=True):
    """
    Un contacto completo por fila; visitas y horario van embebidos en `data`.
    """
    id: str = Field(primary_key=True)
    category: str = Field(index=True)
    name: str = ""
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class TimeOffDocument(SQLModel, table=True):
    id: str = Field(primary_key=True)
    executive: str = Field(index=True)
    start_date: str = ""
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class ProcedureDocument(SQLModel, table=True):
    id: str = Field(primary_key=True)
    doctor_id: str = Field(index=True)
    date: str = ""
    data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
