import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, LOG_LEVEL
from .database import init_db
from .routes import calendar, dashboard, doctors, procedures, timeoff

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="RC MediCall CRM API",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_store_api(request: Request, call_next):
    # los clientes sincronizan por polling: nada de /api debe quedar cacheado
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
    return response


app.include_router(doctors.router, prefix="/api/doctors", tags=["doctors"])
app.include_router(timeoff.router, prefix="/api/timeoff", tags=["timeoff"])
app.include_router(procedures.router, prefix="/api/procedures", tags=["procedures"])
app.include_router(calendar.router, prefix="/api/calendar", tags=["calendar"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Base de datos lista")


@app.get("/")
def read_root():
    return {"status": "ok", "message": "RC MediCall CRM backend running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("medicall.main:app", host="0.0.0.0", port=8080, reload=True)
