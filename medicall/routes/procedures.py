from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..database import get_session
from ..models import Procedure
from ..services import documents

router = APIRouter()


@router.get("", response_model=list[Procedure])
def list_procedures(session: Session = Depends(get_session)):
    return documents.list_procedures(session)


@router.post("")
def upsert_procedure(procedure: Procedure, session: Session = Depends(get_session)):
    documents.save_procedure(session, procedure)
    return {"success": True}


@router.delete("/{procedure_id}")
def delete_procedure(procedure_id: str, session: Session = Depends(get_session)):
    documents.delete_procedure(session, procedure_id)
    return {"success": True}
