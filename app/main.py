from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import plans, usage, payments, resume_credits, jobs
from app.core.config import RUN_MIGRATIONS
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging
from app.db.migrate import run_migrations


# ============================================
# FASTAPI APP INIT
# ============================================

setup_logging()

app = FastAPI(title="Job Board Entitlements")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",      # local frontend
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

register_exception_handlers(app)


# ============================================
# REGISTER ALL ROUTERS
# ============================================

app.include_router(plans.router)
app.include_router(usage.router)
app.include_router(payments.router)
app.include_router(resume_credits.router)
app.include_router(jobs.router)


@app.on_event("startup")
def apply_migrations():
    if RUN_MIGRATIONS:
        run_migrations()


# ============================================
# HEALTH CHECK ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Job board entitlements API running"}
