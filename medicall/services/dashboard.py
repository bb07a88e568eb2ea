from datetime import date
from typing import Iterable, Optional

from ..models import Classification, Contact, Procedure, ProcedureStatus, VisitStatus, WireModel
from .calendar import normalize_executive

UNKNOWN_CONTACT = "CONTACTO DESCONOCIDO"


class DashboardStats(WireModel):
    executive: Optional[str] = None
    total_contacts: int
    planned_visits: int
    completed_visits: int
    performance: int  # % de visitas del mes ya realizadas
    total_revenue: float
    total_commission: float
    classifications: dict[str, int]


class ProcedureRow(WireModel):
    id: str
    date: date
    doctor_id: str
    doctor_name: str
    status: ProcedureStatus
    cost: float
    commission: float


def contact_name(contacts_by_id: dict[str, Contact], procedure: Procedure) -> str:
    """
    doctorId es sólo una clave de búsqueda: si el contacto ya no existe
    se usa el nombre guardado en el procedimiento o "desconocido".
    """
    contact = contacts_by_id.get(procedure.doctor_id)
    if contact is not None:
        return contact.name
    return procedure.doctor_name or UNKNOWN_CONTACT


def procedure_rows(contacts: Iterable[Contact], procedures: Iterable[Procedure]) -> list[ProcedureRow]:
    by_id = {c.id: c for c in contacts}
    return [
        ProcedureRow(
            id=p.id,
            date=p.date,
            doctor_id=p.doctor_id,
            doctor_name=contact_name(by_id, p),
            status=p.status,
            cost=p.cost or 0.0,
            commission=p.commission or 0.0,
        )
        for p in sorted(procedures, key=lambda p: p.date, reverse=True)
    ]


def compute_stats(
    contacts: Iterable[Contact],
    procedures: Iterable[Procedure],
    today: date,
    executive: Optional[str] = None,
) -> DashboardStats:
    """
    Indicadores del mes de `today`: visitas planeadas vs realizadas,
    clasificación de la cartera y facturación de procedimientos hechos.
    """
    executive = normalize_executive(executive)
    mine = [c for c in contacts if executive is None or c.executive.upper() == executive]
    mine_ids = {c.id for c in mine}

    planned = completed = 0
    classifications = {item.value: 0 for item in Classification}
    classifications["NONE"] = 0

    for contact in mine:
        for visit in contact.visits:
            if (visit.date.year, visit.date.month) != (today.year, today.month):
                continue
            if visit.status == VisitStatus.COMPLETED:
                completed += 1
            elif visit.status == VisitStatus.PLANNED:
                planned += 1
        key = contact.classification.value if contact.classification else "NONE"
        classifications[key] += 1

    revenue = commission = 0.0
    for proc in procedures:
        if proc.status != ProcedureStatus.PERFORMED:
            continue
        if (proc.date.year, proc.date.month) != (today.year, today.month):
            continue
        # con filtro de ejecutivo sólo cuentan procedimientos de sus contactos
        if executive is not None and proc.doctor_id not in mine_ids:
            continue
        revenue += proc.cost or 0.0
        commission += proc.commission or 0.0

    total = planned + completed
    return DashboardStats(
        executive=executive,
        total_contacts=len(mine),
        planned_visits=planned,
        completed_visits=completed,
        performance=round(completed / total * 100) if total else 0,
        total_revenue=revenue,
        total_commission=commission,
        classifications=classifications,
    )
