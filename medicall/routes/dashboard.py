from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..database import get_session
from ..services import documents
from ..services.dashboard import DashboardStats, ProcedureRow, compute_stats, procedure_rows

router = APIRouter()


@router.get("", response_model=DashboardStats)
def get_dashboard(
    executive: str = "TODOS",
    day: Optional[date] = None,
    session: Session = Depends(get_session),
):
    contacts = documents.list_contacts(session)
    procedures = documents.list_procedures(session)
    return compute_stats(contacts, procedures, day or date.today(), executive)


@router.get("/procedures", response_model=list[ProcedureRow])
def get_procedure_rows(session: Session = Depends(get_session)):
    """
    Procedimientos con el nombre del médico resuelto por doctorId.
    Si el médico ya no existe la fila sale igual, como contacto desconocido.
    """
    return procedure_rows(documents.list_contacts(session), documents.list_procedures(session))
