from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..database import get_session
from ..models import TimeOffEvent
from ..services import documents

router = APIRouter()


@router.get("", response_model=list[TimeOffEvent])
def list_time_off(session: Session = Depends(get_session)):
    return documents.list_time_off(session)


@router.post("")
def upsert_time_off(event: TimeOffEvent, session: Session = Depends(get_session)):
    documents.save_time_off(session, event)
    return {"success": True}


@router.delete("/{event_id}")
def delete_time_off(event_id: str, session: Session = Depends(get_session)):
    documents.delete_time_off(session, event_id)
    return {"success": True}
