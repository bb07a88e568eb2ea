from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ..database import get_session
from ..errors import LockedEventError, NotFoundError, ValidationFailed
from ..models import Contact, TimeOffEvent, Visit, WireModel
from ..services import documents
from ..services.calendar import CalendarView, ViewMode, build_view, shift_anchor
from ..services.scheduling import (
    PlanRequest,
    VisitReport,
    delete_visit,
    move_visit,
    plan_event,
    report_visit,
)

router = APIRouter()


class PlanResponse(WireModel):
    contact_id: Optional[str] = None
    visit: Optional[Visit] = None
    time_off: Optional[TimeOffEvent] = None


class MoveRequest(WireModel):
    date: date


class NavigationResponse(WireModel):
    previous: date
    next: date


def _load_contact(session: Session, contact_id: str) -> Contact:
    try:
        return documents.get_contact(session, contact_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


def _apply(session: Session, operation, *args) -> Contact:
    """
    Ejecuta una regla de scheduling y traduce los errores de dominio a HTTP.
    """
    try:
        updated = operation(*args)
    except LockedEventError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValidationFailed as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return documents.save_contact(session, updated)


@router.get("", response_model=CalendarView)
def get_calendar(
    day: date,
    view: ViewMode = ViewMode.MONTH,
    executive: str = "TODOS",
    session: Session = Depends(get_session),
):
    contacts = documents.list_contacts(session)
    time_off = documents.list_time_off(session)
    return build_view(view, day, contacts, time_off, executive)


@router.get("/navigation", response_model=NavigationResponse)
def get_navigation(day: date, view: ViewMode = ViewMode.MONTH):
    return NavigationResponse(previous=shift_anchor(view, day, -1), next=shift_anchor(view, day, 1))


@router.post("/events", response_model=PlanResponse)
def plan_calendar_event(
    payload: PlanRequest,
    session: Session = Depends(get_session),
):
    contact = _load_contact(session, payload.contact_id) if payload.contact_id else None
    try:
        result = plan_event(payload, contact)
    except ValidationFailed as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if result.time_off is not None:
        documents.save_time_off(session, result.time_off)
        return PlanResponse(time_off=result.time_off)

    documents.save_contact(session, result.contact)
    return PlanResponse(contact_id=result.contact.id, visit=result.visit)


@router.post("/visits/{contact_id}/{visit_id}/report", response_model=Contact)
def report_calendar_visit(
    contact_id: str,
    visit_id: str,
    body: VisitReport,
    session: Session = Depends(get_session),
):
    contact = _load_contact(session, contact_id)
    return _apply(session, report_visit, contact, visit_id, body)


@router.post("/visits/{contact_id}/{visit_id}/move", response_model=Contact)
def move_calendar_visit(
    contact_id: str,
    visit_id: str,
    body: MoveRequest,
    session: Session = Depends(get_session),
):
    contact = _load_contact(session, contact_id)
    return _apply(session, move_visit, contact, visit_id, body.date)


@router.delete("/visits/{contact_id}/{visit_id}", response_model=Contact)
def delete_calendar_visit(
    contact_id: str,
    visit_id: str,
    session: Session = Depends(get_session),
):
    contact = _load_contact(session, contact_id)
    return _apply(session, delete_visit, contact, visit_id)
