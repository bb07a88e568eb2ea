from sqlmodel import Session, select

from ..errors import NotFoundError
from ..models import (
    Contact,
    ContactDocument,
    Procedure,
    ProcedureDocument,
    TimeOffDocument,
    TimeOffEvent,
    utc_now,
)


def _contact_row(contact: Contact, row: ContactDocument | None) -> ContactDocument:
    # upsert: si el id existe se sobreescriben todos los campos
    row = row or ContactDocument(id=contact.id, category=contact.category.value)
    row.category = contact.category.value
    row.name = contact.name
    row.data = contact.to_wire()
    row.updated_at = utc_now()
    return row


def list_contacts(session: Session) -> list[Contact]:
    rows = session.exec(select(ContactDocument).order_by(ContactDocument.name)).all()
    return [Contact.model_validate(r.data) for r in rows]


def get_contact(session: Session, contact_id: str) -> Contact:
    row = session.get(ContactDocument, contact_id)
    if not row:
        raise NotFoundError(f"Contacto {contact_id} no encontrado")
    return Contact.model_validate(row.data)


def save_contact(session: Session, contact: Contact) -> Contact:
    session.add(_contact_row(contact, session.get(ContactDocument, contact.id)))
    session.commit()
    return contact


def bulk_save_contacts(session: Session, contacts: list[Contact]) -> int:
    count = 0
    for contact in contacts:
        session.add(_contact_row(contact, session.get(ContactDocument, contact.id)))
        count += 1
    session.commit()
    return count


def delete_contact(session: Session, contact_id: str) -> bool:
    row = session.get(ContactDocument, contact_id)
    if not row:
        return False
    session.delete(row)
    session.commit()
    return True


def clear_category(session: Session, category: str) -> int:
    rows = session.exec(select(ContactDocument).where(ContactDocument.category == category)).all()
    for row in rows:
        session.delete(row)
    session.commit()
    return len(rows)


def list_time_off(session: Session) -> list[TimeOffEvent]:
    stmt = select(TimeOffDocument).order_by(TimeOffDocument.start_date.desc())
    return [TimeOffEvent.model_validate(r.data) for r in session.exec(stmt).all()]


def save_time_off(session: Session, event: TimeOffEvent) -> TimeOffEvent:
    row = session.get(TimeOffDocument, event.id) or TimeOffDocument(id=event.id, executive=event.executive)
    row.executive = event.executive
    row.start_date = event.start_date.isoformat()
    row.data = event.to_wire()
    row.updated_at = utc_now()
    session.add(row)
    session.commit()
    return event


def delete_time_off(session: Session, event_id: str) -> bool:
    row = session.get(TimeOffDocument, event_id)
    if not row:
        return False
    session.delete(row)
    session.commit()
    return True


def list_procedures(session: Session) -> list[Procedure]:
    stmt = select(ProcedureDocument).order_by(ProcedureDocument.date.desc())
    return [Procedure.model_validate(r.data) for r in session.exec(stmt).all()]


def save_procedure(session: Session, procedure: Procedure) -> Procedure:
    row = session.get(ProcedureDocument, procedure.id) or ProcedureDocument(
        id=procedure.id, doctor_id=procedure.doctor_id
    )
    row.doctor_id = procedure.doctor_id
    row.date = procedure.date.isoformat()
    row.data = procedure.to_wire()
    row.updated_at = utc_now()
    session.add(row)
    session.commit()
    return procedure


def delete_procedure(session: Session, procedure_id: str) -> bool:
    row = session.get(ProcedureDocument, procedure_id)
    if not row:
        return False
    session.delete(row)
    session.commit()
    return True
