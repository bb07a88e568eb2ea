"""
Proyección del calendario: combina las visitas de cada contacto con las
ausencias del ejecutivo y las reparte en vistas de mes, semana o día.

Todo aquí es puro: nunca se modifican las colecciones de entrada, así que
se puede recalcular en cada request sin efectos secundarios.
"""
import calendar as _cal
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from ..models import Contact, TimeOffEvent, Visit, WireModel

# valores que en la UI/API significan "todos los ejecutivos"
ALL_EXECUTIVES = {"TODOS", "ALL", "*", ""}

DAY_START_HOUR = 8
DAY_END_HOUR = 20
SLOT_MINUTES = 30


class EventKind(str, Enum):
    VISIT = "visit"
    ABSENCE = "absence"


class ViewMode(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


class CalendarEvent(WireModel):
    kind: EventKind
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    visit: Optional[Visit] = None
    time_off: Optional[TimeOffEvent] = None
    locked: bool = False

    @property
    def event_id(self) -> str:
        if self.kind == EventKind.VISIT:
            return self.visit.id
        return self.time_off.id

    @property
    def time(self) -> Optional[str]:
        if self.kind == EventKind.VISIT:
            return self.visit.time
        return None

    def occurs_on(self, day: date) -> bool:
        if self.kind == EventKind.VISIT:
            return self.visit.date == day
        return self.time_off.covers(day)


class CalendarDay(WireModel):
    day: date
    events: list[CalendarEvent]


class TimeSlot(WireModel):
    time: str
    events: list[CalendarEvent]


class CalendarView(WireModel):
    mode: ViewMode
    anchor: date
    executive: Optional[str] = None
    # mes: celdas con None a la izquierda según el día de la semana del 1
    cells: list[Optional[CalendarDay]] = []
    # día: franjas de 30 min + carril para eventos sin hora
    slots: list[TimeSlot] = []
    all_day: list[CalendarEvent] = []


def normalize_executive(executive: Optional[str]) -> Optional[str]:
    if executive is None or executive.strip().upper() in ALL_EXECUTIVES:
        return None
    return executive.strip().upper()


def executives(contacts: Iterable[Contact]) -> list[str]:
    return sorted({c.executive for c in contacts if c.executive})


def collect_events(
    contacts: Iterable[Contact],
    time_off: Iterable[TimeOffEvent],
    executive: Optional[str] = None,
) -> list[CalendarEvent]:
    """
    Flujo único de eventos para un ejecutivo (o todos si executive es None).
    """
    executive = normalize_executive(executive)
    events: list[CalendarEvent] = []

    for contact in contacts:
        if executive and contact.executive.upper() != executive:
            continue
        for visit in contact.visits:
            events.append(
                CalendarEvent(
                    kind=EventKind.VISIT,
                    contact_id=contact.id,
                    contact_name=contact.name,
                    visit=visit,
                    locked=visit.is_locked,
                )
            )

    for toff in time_off:
        if executive and toff.executive.upper() != executive:
            continue
        events.append(CalendarEvent(kind=EventKind.ABSENCE, time_off=toff))

    return events


def _sort_key(event: CalendarEvent):
    # sin hora primero (ausencias de día completo), luego por hora
    time = event.time
    return (
        0 if time is None else 1,
        time or "",
        0 if event.kind == EventKind.ABSENCE else 1,
        event.contact_name or "",
        event.event_id,
    )


def sort_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted(events, key=_sort_key)


def events_for_day(events: Iterable[CalendarEvent], day: date) -> list[CalendarEvent]:
    return sort_events(e for e in events if e.occurs_on(day))


def month_grid(year: int, month: int) -> list[Optional[date]]:
    """
    Celdas del mes con semana ISO (lunes primero): None para el hueco
    inicial y luego del día 1 al último.
    """
    first = date(year, month, 1)
    days_in_month = _cal.monthrange(year, month)[1]
    cells: list[Optional[date]] = [None] * first.weekday()
    cells.extend(first + timedelta(days=i) for i in range(days_in_month))
    return cells


def week_days(anchor: date) -> list[date]:
    start = anchor - timedelta(days=anchor.weekday())
    return [start + timedelta(days=i) for i in range(7)]


def day_slots(
    start_hour: int = DAY_START_HOUR,
    end_hour: int = DAY_END_HOUR,
    slot_minutes: int = SLOT_MINUTES,
) -> list[str]:
    current = datetime(2000, 1, 1, start_hour)
    end = datetime(2000, 1, 1, end_hour)
    slots = []
    while current <= end:
        slots.append(current.strftime("%H:%M"))
        current += timedelta(minutes=slot_minutes)
    return slots


def shift_anchor(mode: ViewMode, anchor: date, step: int) -> date:
    """
    Periodo anterior (step=-1) o siguiente (step=1).
    En mes se recorta el día si el mes destino es más corto.
    """
    if mode == ViewMode.DAY:
        return anchor + timedelta(days=step)
    if mode == ViewMode.WEEK:
        return anchor + timedelta(weeks=step)
    if mode == ViewMode.MONTH:
        month_index = anchor.year * 12 + (anchor.month - 1) + step
        year, month = divmod(month_index, 12)
        month += 1
        day = min(anchor.day, _cal.monthrange(year, month)[1])
        return date(year, month, day)
    raise ValueError(f"Vista desconocida: {mode}")


def build_view(
    mode: ViewMode,
    anchor: date,
    contacts: Iterable[Contact],
    time_off: Iterable[TimeOffEvent],
    executive: Optional[str] = None,
) -> CalendarView:
    events = collect_events(contacts, time_off, executive)
    view = CalendarView(mode=mode, anchor=anchor, executive=normalize_executive(executive))

    if mode == ViewMode.MONTH:
        view.cells = [
            CalendarDay(day=d, events=events_for_day(events, d)) if d else None
            for d in month_grid(anchor.year, anchor.month)
        ]
    elif mode == ViewMode.WEEK:
        view.cells = [CalendarDay(day=d, events=events_for_day(events, d)) for d in week_days(anchor)]
    elif mode == ViewMode.DAY:
        todays = events_for_day(events, anchor)
        slot_names = day_slots()
        by_slot: dict[str, list[CalendarEvent]] = {s: [] for s in slot_names}
        for event in todays:
            if event.time in by_slot:
                by_slot[event.time].append(event)
            else:
                view.all_day.append(event)
        view.slots = [TimeSlot(time=s, events=by_slot[s]) for s in slot_names]
    else:
        raise ValueError(f"Vista desconocida: {mode}")

    return view
