"""
Importación / exportación CSV del directorio y carga del seed incluido
en el paquete.
"""
import csv
import io
import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from ..models import Category, Classification, Contact, empty_schedule

logger = logging.getLogger(__name__)

# cabecera normalizada -> campo de Contact
HEADER_ALIASES = {
    "id": "id",
    "ejecutivo": "executive",
    "executive": "executive",
    "nombre": "name",
    "name": "name",
    "especialidad": "specialty",
    "specialty": "specialty",
    "sub especialidad": "sub_specialty",
    "subespecialidad": "sub_specialty",
    "subspecialty": "sub_specialty",
    "direccion": "address",
    "dirección": "address",
    "address": "address",
    "hospital": "hospital",
    "consultorio": "office_number",
    "officenumber": "office_number",
    "piso": "floor",
    "floor": "floor",
    "telefono": "phone",
    "teléfono": "phone",
    "phone": "phone",
    "correo electronico": "email",
    "correo electrónico": "email",
    "correo": "email",
    "email": "email",
    "cedula profesional": "cedula",
    "cédula profesional": "cedula",
    "cedula": "cedula",
    "fecha de nacimiento": "birth_date",
    "birthdate": "birth_date",
    "aseguradora": "insurance",
    "categoria": "category",
    "categoría": "category",
    "category": "category",
    "clasificacion": "classification",
    "clasificación": "classification",
    "classification": "classification",
    "estilo social": "social_style",
    "socialstyle": "social_style",
    "segmento actitudinal": "attitudinal_segment",
    "attitudinalsegment": "attitudinal_segment",
    "hora de atención": "hours",
    "hora de atencion": "hours",
    "observaciones": "important_notes",
    "notas": "important_notes",
    "importantnotes": "important_notes",
}

EXPORT_COLUMNS = [
    ("ID", "id"),
    ("EJECUTIVO", "executive"),
    ("NOMBRE", "name"),
    ("CATEGORIA", "category"),
    ("ESPECIALIDAD", "specialty"),
    ("SUB ESPECIALIDAD", "sub_specialty"),
    ("DIRECCION", "address"),
    ("HOSPITAL", "hospital"),
    ("CONSULTORIO", "office_number"),
    ("PISO", "floor"),
    ("TELEFONO", "phone"),
    ("CORREO ELECTRONICO", "email"),
    ("CEDULA PROFESIONAL", "cedula"),
    ("FECHA DE NACIMIENTO", "birth_date"),
    ("CLASIFICACION", "classification"),
    ("ESTILO SOCIAL", "social_style"),
    ("SEGMENTO ACTITUDINAL", "attitudinal_segment"),
    ("OBSERVACIONES", "important_notes"),
    ("VISITAS", "visits"),
]

UTF8_BOM = "\ufeff"

SEED_PATH = Path(__file__).resolve().parent.parent / "data" / "seed.csv"


def _normalize_header(header: str) -> str:
    return re.sub(r"[\s_]+", " ", header.replace(UTF8_BOM, "")).strip().lower()


def _header_map(headers: Iterable[str]) -> dict[int, str]:
    mapping = {}
    for idx, header in enumerate(headers):
        key = _normalize_header(header)
        field = HEADER_ALIASES.get(key) or HEADER_ALIASES.get(key.replace(" ", ""))
        if field and field not in mapping.values():
            mapping[idx] = field
    return mapping


def _parse_category(raw: str, default: Category) -> Category:
    value = raw.strip().upper()
    for category in Category:
        if category.value == value:
            return category
    return default


def _parse_classification(raw: str, category_raw: str) -> Classification:
    value = raw.strip().upper()
    for item in Classification:
        if item.value == value:
            return item
    # en los listados de clientes "VIP" marca la clasificación A
    return Classification.A if "VIP" in category_raw.upper() else Classification.C


def _row_to_contact(
    row: dict[str, str],
    index: int,
    default_category: Category,
    default_executive: str,
) -> Optional[Contact]:
    name = row.get("name", "").strip().upper()
    if not name or name == "NOMBRE":
        return None

    category_raw = row.get("category", "")
    category = _parse_category(category_raw, default_category)
    compact = re.sub(r"\s+", "", name)
    contact_id = row.get("id", "").strip() or f"{category.value[:3].lower()}-{index}-{compact}"
    specialty = row.get("specialty", "").strip().upper()
    if not specialty:
        specialty = "HOSPITAL" if category == Category.HOSPITAL else "GENERAL"

    return Contact(
        id=contact_id,
        category=category,
        executive=(row.get("executive", "").strip() or default_executive).upper(),
        name=name,
        specialty=specialty,
        sub_specialty=row.get("sub_specialty", "").strip().upper(),
        address=row.get("address", "").strip().upper(),
        hospital=row.get("hospital", "").strip().upper(),
        office_number=row.get("office_number", "").strip(),
        floor=row.get("floor", "").strip(),
        phone=row.get("phone", "").strip(),
        email=row.get("email", "").strip(),
        cedula=row.get("cedula", "").strip(),
        birth_date=row.get("birth_date", "").strip(),
        is_insurance_doctor=bool(row.get("insurance", "").strip()),
        classification=_parse_classification(row.get("classification", ""), category_raw),
        social_style=row.get("social_style", "").strip().upper(),
        attitudinal_segment=row.get("attitudinal_segment", "").strip().upper(),
        important_notes=row.get("important_notes", "").strip(),
        schedule=empty_schedule(),
        visits=[],
    )


def import_contacts_csv(
    text: str,
    default_category: Category = Category.MEDICO,
    default_executive: str = "SIN ASIGNAR",
) -> list[Contact]:
    """
    Convierte un CSV en contactos. La cabecera se empareja sin importar
    mayúsculas; las columnas que falten quedan vacías y las filas sin
    nombre (o ilegibles) se saltan sin abortar el lote.
    """
    reader = csv.reader(io.StringIO(text.lstrip(UTF8_BOM)))
    try:
        headers = next(reader)
    except StopIteration:
        return []

    mapping = _header_map(headers)
    if "name" not in mapping.values():
        logger.warning("CSV sin columna de nombre; nada que importar")
        return []

    contacts: list[Contact] = []
    seen: set[str] = set()
    for index, values in enumerate(reader, start=1):
        if not any(v.strip() for v in values):
            continue
        row = {field: values[idx] for idx, field in mapping.items() if idx < len(values)}
        try:
            contact = _row_to_contact(row, index, default_category, default_executive)
        except ValueError as exc:
            logger.warning("Fila %s ignorada: %s", index, exc)
            continue
        if contact is None or contact.id in seen:
            continue
        seen.add(contact.id)
        contacts.append(contact)

    logger.info("CSV importado: %s contactos", len(contacts))
    return contacts


def export_contacts_csv(contacts: Iterable[Contact]) -> str:
    """
    CSV entrecomillado con BOM UTF-8 para que Excel respete los acentos.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in EXPORT_COLUMNS])
    for contact in contacts:
        row = []
        for _, field in EXPORT_COLUMNS:
            if field == "visits":
                row.append(len(contact.visits))
                continue
            value = getattr(contact, field)
            if hasattr(value, "value"):
                value = value.value
            row.append("" if value is None else value)
        writer.writerow(row)
    return UTF8_BOM + buffer.getvalue()


def load_seed_contacts() -> list[Contact]:
    """
    Dataset incluido en el paquete; sólo se usa sin conexión o para
    poblar una API vacía.
    """
    text = SEED_PATH.read_text(encoding="utf-8")
    return import_contacts_csv(text)
