import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ✅ Import All API Routes
from clinicjobs.api.routes import applications, hospital_applications, health

# ✅ Import Core Services
from clinicjobs.core import config
from clinicjobs.core.errors import ApplicationError, Busy
from clinicjobs.core.logging_config import setup_logging
from clinicjobs.db.migrate import run_migrations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if config.RUN_MIGRATIONS:
        run_migrations()
    logger.info("ClinicJobs API started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="ClinicJobs API", lifespan=lifespan)

# ✅ CORS LOCKDOWN, ONLY ALLOW CONFIGURED FRONTENDS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ ERROR MAPPING
# ============================================

@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, exc: ApplicationError):
    headers = None
    if isinstance(exc, Busy):
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(applications.router)
app.include_router(hospital_applications.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "ClinicJobs API running"}
