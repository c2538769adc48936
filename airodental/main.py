# airodental/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import init_db

# Routers
from .routers.tools import router as tools_router
from .routers.appointments import router as appointments_router
from .routers.patients import router as patients_router
from .routers.users import router as users_router

# ──────────────────────────────────────────────────────────────────────────────
# LOGGING
# LOG_LEVEL drives the app; SQLAlchemy stays at WARNING unless debugging
# ──────────────────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(
    getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────
app = FastAPI(title=settings.APP_NAME)

# The voice platform calls the tool endpoints from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(tools_router)
app.include_router(appointments_router)
app.include_router(patients_router)
app.include_router(users_router)


# ──────────────────────────────────────────────────────────────────────────────
# Lifecycle
# ──────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    logger.info(
        "Startup complete: %s (%s), policy=%s tz=%s",
        settings.APP_NAME,
        settings.ENV,
        settings.CALENDAR_POLICY.value,
        settings.TIMEZONE,
    )


@app.get("/")
def root():
    return {"ok": True, "app": settings.APP_NAME, "env": settings.ENV}


@app.get("/health")
def health():
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "tz": settings.TIMEZONE,
        "calendar_policy": settings.CALENDAR_POLICY.value,
    }
