import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from officeflow.core.config import settings
from officeflow.api.v1.session import router as session_router
from officeflow.api.v1.demands import router as demands_router
from officeflow.api.v1.vacations import router as vacations_router
from officeflow.api.v1.employees import router as employees_router
from officeflow.api.v1.certificates import router as certificates_router
from officeflow.api.v1.statuses import router as statuses_router
from officeflow.api.v1.dashboard import router as dashboard_router
from officeflow.api.v1.compliance import router as compliance_router
from officeflow.api.v1.attachments import router as attachments_router
from officeflow.api.v1.backup import router as backup_router
from officeflow.db.mongo import get_mongo_client, close_mongo_client
from officeflow.db.mongo_indexes import ensure_indexes
from officeflow.sync.workspace import registry

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Officeflow Backend")

# Build CORS allowlist from local dev + configured origins
_base_origins = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
if settings.FRONTEND_BASE_URL:
    _base_origins.add(settings.FRONTEND_BASE_URL)
for o in settings.ALLOWED_ORIGINS:
    _base_origins.add(o)
# Normalize by stripping trailing slashes to match Origin header format
_allowed_origins = sorted({o.rstrip('/') for o in _base_origins if o})

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=r"^http(s)?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Welcome to Officeflow Backend"}


@app.get("/health")
def health_check():
    return {"status": "ok", "store": settings.STORE_BACKEND}


# Mount API routers
app.include_router(session_router, prefix="/api/v1")
app.include_router(demands_router, prefix="/api/v1")
app.include_router(vacations_router, prefix="/api/v1")
app.include_router(employees_router, prefix="/api/v1")
app.include_router(certificates_router, prefix="/api/v1")
app.include_router(statuses_router, prefix="/api/v1")
app.include_router(dashboard_router, prefix="/api/v1")
app.include_router(compliance_router, prefix="/api/v1")
app.include_router(attachments_router, prefix="/api/v1")
app.include_router(backup_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup():
    if settings.STORE_BACKEND != "mongo":
        logging.getLogger("uvicorn.error").info("Using %s store backend", settings.STORE_BACKEND)
        return
    get_mongo_client()
    # Create required indexes (non-fatal on failure)
    try:
        await ensure_indexes()
    except Exception as exc:
        logging.getLogger("uvicorn.error").warning(
            "Mongo index initialization failed: %s", exc
        )


@app.on_event("shutdown")
async def on_shutdown():
    # Let open sessions finish their pending writes
    await registry.close_all()
    if settings.STORE_BACKEND == "mongo":
        close_mongo_client()
