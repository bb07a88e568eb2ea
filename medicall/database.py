from sqlmodel import SQLModel, create_engine, Session
from .config import DATABASE_URL

# SQLite por defecto; FastAPI atiende requests en varios hilos
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)

def init_db() -> None:
    """
    Crea las tablas de documentos (contactos, ausencias, procedimientos).
    Cada fila guarda el documento JSON completo que expone la API.
    """
    from . import models  # registra las tablas de documentos
    SQLModel.metadata.create_all(engine)

def get_session():
    """
    Dependencia de FastAPI: una sesión por request sobre el almacén de
    documentos; los upserts hacen commit dentro de services/documents.py.
    """
    with Session(engine) as session:
        yield session
