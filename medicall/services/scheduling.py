"""
Ciclo de vida de visitas y citas.

Estados: planned -> completed (y completed -> planned como corrección
desde el reporte). Las visitas con outcome CITA quedan bloqueadas desde
que se crean: no se mueven, no se borran y no se reportan.

Cada operación devuelve un Contact nuevo; nunca se edita la lista de
visitas en sitio.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from pydantic import Field

from ..errors import LockedEventError, NotFoundError, ValidationFailed
from ..models import (
    ActivityType,
    Contact,
    NextStepType,
    Outcome,
    Priority,
    REPORTABLE_OUTCOMES,
    TimeOffDuration,
    TimeOffEvent,
    TimeOffReason,
    Visit,
    VisitStatus,
    WireModel,
)
from .calendar import day_slots

# las citas solo se dan en horario de consulta
CITA_SLOTS = ("09:00", "16:00")
VISIT_SLOTS = tuple(day_slots())

CITA_LOCKED_MESSAGE = "Las CITAS no pueden ser eliminadas una vez programadas."
CITA_MOVE_MESSAGE = "Las CITAS programadas no pueden moverse de fecha."
CITA_REPORT_MESSAGE = "Las CITAS programadas no pueden reportarse ni modificarse."


class PlanRequest(WireModel):
    activity: ActivityType = ActivityType.VISITA
    contact_id: Optional[str] = None
    date: date
    time: str = "09:00"
    objective: str = ""
    priority: Optional[Priority] = None
    # sólo para AUSENCIA
    executive: Optional[str] = None
    end_date: Optional[date] = None
    reason: Optional[TimeOffReason] = None
    duration: TimeOffDuration = TimeOffDuration.ALL_DAY


class VisitReport(WireModel):
    outcome: Outcome
    note: str = ""
    follow_up: Optional[str] = None
    completed: bool = True
    commitment_date: Optional[date] = None
    interest_level: Optional[int] = Field(default=None, ge=1, le=5)
    next_step_type: Optional[NextStepType] = None
    materials_delivered: Optional[str] = None


@dataclass
class PlanResult:
    contact: Optional[Contact] = None
    visit: Optional[Visit] = None
    time_off: Optional[TimeOffEvent] = None


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def _clean(text: Optional[str]) -> str:
    return (text or "").strip().upper()


def find_visit(contact: Contact, visit_id: str) -> Visit:
    for visit in contact.visits:
        if visit.id == visit_id:
            return visit
    raise NotFoundError(f"Visita {visit_id} no encontrada en {contact.id}")


def _replace_visit(contact: Contact, updated: Visit) -> Contact:
    visits = [updated if v.id == updated.id else v for v in contact.visits]
    return contact.model_copy(update={"visits": visits})


# ---------- Alta ----------

def create_time_off(
    executive: str,
    start_date: date,
    end_date: Optional[date] = None,
    reason: Optional[TimeOffReason] = None,
    duration: TimeOffDuration = TimeOffDuration.ALL_DAY,
    notes: str = "",
) -> TimeOffEvent:
    executive = _clean(executive)
    if not executive:
        raise ValidationFailed("La ausencia necesita un ejecutivo")
    end_date = end_date or start_date
    if end_date < start_date:
        raise ValidationFailed("La fecha final no puede ser anterior a la inicial")
    return TimeOffEvent(
        id=new_id("toff"),
        executive=executive,
        start_date=start_date,
        end_date=end_date,
        duration=duration,
        reason=reason or TimeOffReason.PERMISO,
        notes=_clean(notes),
    )


def plan_event(request: PlanRequest, contact: Optional[Contact]) -> PlanResult:
    """
    Agenda una VISITA, una CITA o una AUSENCIA.

    Las ausencias no pasan por la máquina de estados: generan un
    TimeOffEvent y ya. Para visitas/citas se valida todo antes de tocar
    el contacto.
    """
    if request.activity == ActivityType.AUSENCIA:
        executive = request.executive or (contact.executive if contact else "")
        toff = create_time_off(
            executive,
            request.date,
            end_date=request.end_date,
            reason=request.reason,
            duration=request.duration,
            notes=request.objective,
        )
        return PlanResult(time_off=toff)

    objective = _clean(request.objective)

    if request.activity == ActivityType.CITA:
        if contact is None:
            raise ValidationFailed("Selecciona un médico para la cita")
        if request.time not in CITA_SLOTS:
            raise ValidationFailed(
                f"Las citas sólo se agendan a las {' o '.join(CITA_SLOTS)}"
            )
        outcome = Outcome.CITA
        note = "CITA PROGRAMADA"
        objective = objective or "CITA PROGRAMADA"
    elif request.activity == ActivityType.VISITA:
        if contact is None or not objective:
            raise ValidationFailed("Médico y Objetivo son obligatorios")
        if request.time not in VISIT_SLOTS:
            raise ValidationFailed(f"Hora fuera del horario de visitas: {request.time}")
        outcome = Outcome.PLANEADA
        note = "VISITA PLANEADA"
    else:
        raise ValidationFailed(f"Tipo de actividad desconocido: {request.activity}")

    visit = Visit(
        id=new_id("v"),
        date=request.date,
        time=request.time,
        objective=objective,
        outcome=outcome,
        note=note,
        status=VisitStatus.PLANNED,
        priority=request.priority,
    )
    updated = contact.model_copy(update={"visits": [*contact.visits, visit]})
    return PlanResult(contact=updated, visit=visit)


# ---------- Reporte ----------

def report_visit(contact: Contact, visit_id: str, report: VisitReport) -> Contact:
    """
    Registra el resultado de una visita y, si se indica fecha de
    compromiso, agrega una visita COMPROMISO nueva al mismo contacto.
    """
    visit = find_visit(contact, visit_id)
    if visit.is_locked:
        raise LockedEventError(CITA_REPORT_MESSAGE)

    if report.outcome not in REPORTABLE_OUTCOMES:
        raise ValidationFailed(f"Resultado no válido para un reporte: {report.outcome.value}")
    if report.commitment_date is not None and report.commitment_date <= visit.date:
        raise ValidationFailed("La fecha de compromiso debe ser posterior a la visita")

    follow_up = _clean(report.follow_up) or None
    updated_visit = visit.model_copy(
        update={
            "outcome": report.outcome,
            "note": _clean(report.note),
            "follow_up": follow_up,
            "status": VisitStatus.COMPLETED if report.completed else VisitStatus.PLANNED,
            "interest_level": report.interest_level if report.interest_level is not None else visit.interest_level,
            "next_step_type": report.next_step_type or visit.next_step_type,
            "materials_delivered": report.materials_delivered or visit.materials_delivered,
        }
    )
    updated = _replace_visit(contact, updated_visit)

    if report.commitment_date is not None:
        commitment = Visit(
            id=new_id("v"),
            date=report.commitment_date,
            time=visit.time,
            objective=follow_up or "COMPROMISO DE SEGUIMIENTO",
            note="COMPROMISO",
            outcome=Outcome.COMPROMISO,
            status=VisitStatus.PLANNED,
            priority=visit.priority,
        )
        updated = updated.model_copy(update={"visits": [*updated.visits, commitment]})

    return updated


# ---------- Mover / borrar ----------

def move_visit(contact: Contact, visit_id: str, new_date: date) -> Contact:
    visit = find_visit(contact, visit_id)
    if visit.is_locked:
        raise LockedEventError(CITA_MOVE_MESSAGE)
    if visit.date == new_date:
        return contact
    return _replace_visit(contact, visit.model_copy(update={"date": new_date}))


def delete_visit(contact: Contact, visit_id: str) -> Contact:
    visit = find_visit(contact, visit_id)
    if visit.is_locked:
        raise LockedEventError(CITA_LOCKED_MESSAGE)
    visits = [v for v in contact.visits if v.id != visit_id]
    return contact.model_copy(update={"visits": visits})


def move_time_off(event: TimeOffEvent, new_date: date) -> TimeOffEvent:
    # al arrastrarla la ausencia pasa a ser de un solo día
    return event.model_copy(update={"start_date": new_date, "end_date": new_date})
