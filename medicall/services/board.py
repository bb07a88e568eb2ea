import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..errors import LockedEventError, NotFoundError
from ..models import Contact, TimeOffEvent, Visit
from .calendar import (
    CalendarEvent,
    CalendarView,
    EventKind,
    ViewMode,
    build_view,
    collect_events,
    events_for_day,
    normalize_executive,
)
from .scheduling import (
    CITA_LOCKED_MESSAGE,
    CITA_MOVE_MESSAGE,
    PlanRequest,
    PlanResult,
    VisitReport,
    delete_visit,
    move_time_off,
    move_visit,
    plan_event,
    report_visit,
)
from .sync import SyncService

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "¿Seguro que deseas eliminar este evento del calendario?"


@dataclass(frozen=True)
class DragPayload:
    """Lo que viaja entre el inicio del arrastre y el drop."""
    kind: EventKind
    event_id: str
    contact_id: Optional[str] = None


class CalendarBoard:
    """
    Calendario de un ejecutivo sobre el estado de SyncService.

    Aplica las reglas de scheduling y escribe cada resultado por la capa
    de sincronización (local inmediato + API en segundo plano).
    """

    def __init__(self, sync: SyncService, executive: Optional[str] = None):
        self.sync = sync
        self.executive = normalize_executive(executive)

    # ---------- lectura ----------

    def events(self) -> list[CalendarEvent]:
        return collect_events(self.sync.contacts, self.sync.time_off, self.executive)

    def events_on(self, day: date) -> list[CalendarEvent]:
        return events_for_day(self.events(), day)

    def view(self, mode: ViewMode, anchor: date) -> CalendarView:
        return build_view(mode, anchor, self.sync.contacts, self.sync.time_off, self.executive)

    def my_contacts(self) -> list[Contact]:
        if self.executive is None:
            return list(self.sync.contacts)
        return [c for c in self.sync.contacts if c.executive.upper() == self.executive]

    def search_contacts(self, term: str) -> list[Contact]:
        term = term.strip().lower()
        if not term:
            return []
        return [
            c for c in self.my_contacts()
            if term in c.name.lower() or term in (c.specialty or "").lower()
        ]

    # ---------- alta / reporte ----------

    def plan(self, request: PlanRequest) -> PlanResult:
        contact = self.sync.find_contact(request.contact_id) if request.contact_id else None
        if request.executive is None and self.executive:
            request = request.model_copy(update={"executive": self.executive})
        result = plan_event(request, contact)
        if result.time_off is not None:
            self.sync.add_time_off(result.time_off)
        else:
            self.sync.update_contact(result.contact)
        return result

    def report(self, contact_id: str, visit_id: str, report: VisitReport) -> Contact:
        updated = report_visit(self.sync.get_contact(contact_id), visit_id, report)
        self.sync.update_contact(updated)
        return updated

    def delete_visit(self, contact_id: str, visit_id: str) -> Contact:
        updated = delete_visit(self.sync.get_contact(contact_id), visit_id)
        self.sync.update_contact(updated)
        return updated

    # ---------- drag & drop ----------

    def begin_drag(self, event: CalendarEvent) -> DragPayload:
        """
        Las CITAS no se pueden ni empezar a arrastrar: no hay payload.
        """
        if event.locked:
            raise LockedEventError(CITA_MOVE_MESSAGE)
        return DragPayload(kind=event.kind, event_id=event.event_id, contact_id=event.contact_id)

    def _find_time_off(self, event_id: str) -> TimeOffEvent:
        for toff in self.sync.time_off:
            if toff.id == event_id:
                return toff
        raise NotFoundError(f"Ausencia {event_id} no encontrada")

    def drop_on_day(self, payload: DragPayload, day: date) -> Visit | TimeOffEvent:
        if payload.kind == EventKind.ABSENCE:
            moved = move_time_off(self._find_time_off(payload.event_id), day)
            self.sync.update_time_off(moved)
            return moved
        if payload.kind == EventKind.VISIT:
            updated = move_visit(self.sync.get_contact(payload.contact_id), payload.event_id, day)
            self.sync.update_contact(updated)
            return next(v for v in updated.visits if v.id == payload.event_id)
        raise ValueError(f"Tipo de evento desconocido: {payload.kind}")

    def drop_on_trash(self, payload: DragPayload, confirm: Callable[[str], bool]) -> bool:
        """
        Borrado arrastrando a la papelera. Pide confirmación antes de
        borrar; una CITA se rechaza sin preguntar y sin tocar nada.
        """
        if payload.kind == EventKind.VISIT:
            contact = self.sync.get_contact(payload.contact_id)
            visit = next((v for v in contact.visits if v.id == payload.event_id), None)
            if visit is None:
                raise NotFoundError(f"Visita {payload.event_id} no encontrada")
            if visit.is_locked:
                raise LockedEventError(CITA_LOCKED_MESSAGE)
            if not confirm(DELETE_CONFIRMATION):
                return False
            self.sync.update_contact(delete_visit(contact, payload.event_id))
            logger.info("Visita %s eliminada de %s", payload.event_id, contact.id)
            return True

        if payload.kind == EventKind.ABSENCE:
            self._find_time_off(payload.event_id)
            if not confirm(DELETE_CONFIRMATION):
                return False
            self.sync.delete_time_off(payload.event_id)
            logger.info("Ausencia %s eliminada", payload.event_id)
            return True

        raise ValueError(f"Tipo de evento desconocido: {payload.kind}")
