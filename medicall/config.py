import os
from dotenv import load_dotenv

load_dotenv()

# SQLite local
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medicall.db")

# API remota consumida por la capa de sincronización
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080/api")

# 8s para aguantar cold starts del servidor
SYNC_TIMEOUT_SECONDS = float(os.getenv("SYNC_TIMEOUT_SECONDS", "8"))
RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "60"))

# Caché local versionada: subir la versión invalida snapshots viejos
CACHE_DIR = os.getenv("CACHE_DIR", "./.medicall_cache")
CACHE_VERSION = os.getenv("CACHE_VERSION", "v5")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
