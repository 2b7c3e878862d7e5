"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from caseflow.core.config import settings
from caseflow.core.error_handlers import register_error_handlers
from caseflow.core.structured_logging import configure_logging
from caseflow.db.session import engine

configure_logging()

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Caseflow API",
    description="Case routing and form lifecycle API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

register_error_handlers(app)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# ============================================================================
# Routers
# ============================================================================

from caseflow.routers import audit, cases, coordinators, form_instances  # noqa: E402

app.include_router(cases.router, prefix="/cases", tags=["cases"])
app.include_router(coordinators.router, prefix="/coordinators", tags=["coordinators"])
app.include_router(form_instances.router, prefix="/form-instances", tags=["form-instances"])
# Audit Trail (Manager+)
app.include_router(audit.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
