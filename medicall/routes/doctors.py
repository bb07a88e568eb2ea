import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ..database import get_session
from ..models import Category, Contact
from ..services import documents

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[Contact])
def list_doctors(session: Session = Depends(get_session)):
    return documents.list_contacts(session)


@router.post("")
def upsert_doctor(doctor: Contact, session: Session = Depends(get_session)):
    saved = documents.save_contact(session, doctor)
    return {"success": True, "data": saved.to_wire()}


@router.post("/bulk")
def bulk_upsert_doctors(doctors: list[Contact], session: Session = Depends(get_session)):
    if not doctors:
        raise HTTPException(status_code=400, detail="No data provided")
    count = documents.bulk_save_contacts(session, doctors)
    logger.info("Bulk upsert de %s contactos", count)
    return {"success": True, "count": count}


@router.delete("/clear/{category}")
def clear_doctors(category: str, session: Session = Depends(get_session)):
    try:
        parsed = Category(category.upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown category {category}")
    count = documents.clear_category(session, parsed.value)
    return {"success": True, "count": count}


@router.delete("/{doctor_id}")
def delete_doctor(doctor_id: str, session: Session = Depends(get_session)):
    documents.delete_contact(session, doctor_id)
    return {"success": True}
