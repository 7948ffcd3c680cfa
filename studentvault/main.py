"""StudentVault Main FastAPI App - student records with field-level encryption

This file builds the server: settings -> key context -> ciphers/tokens -> routes.
Run with: uvicorn studentvault.main:app --reload
Access at: http://localhost:8000/docs (interactive docs!)

Security Layers:
1. Client tier: browser/StudentClient encrypts PII before it is sent
2. Server tier: PII re-encrypted (AES-256-CBC + HMAC) before it is stored
3. Passwords: bcrypt over the client's deterministic password ciphertext
4. Sessions: access (1 day) + refresh (7 day) JWTs, bearer-token guard on CRUD routes

Misconfigured key material stops the process here, before any request is served.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn
import structlog

from studentvault.config import Settings, load_settings
from studentvault.errors import AuthError, StudentVaultError
from studentvault.logging_config import configure_logging
from studentvault.records.database import Database
from studentvault.records.router import router as student_router
from studentvault.security.field_pipeline import build_pipeline
from studentvault.security.key_manager import KeyContext
from studentvault.security.tokens import TokenIssuer
from studentvault.utils.health_check import HealthChecker
from studentvault.utils.metrics import get_metrics_text

logger = structlog.get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app; raises KeyConfigurationError if keys are missing/malformed"""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    keys = KeyContext.from_settings(settings)
    database = Database(settings.database_url)
    database.create_all()

    app = FastAPI(
        title="StudentVault - Encrypted Student Records",
        description="""
        **Student record API:**
        - 🔐 PII double encrypted (client tier + server tier)
        - 🔑 bcrypt password hashes, never reversible
        - 🎟️ JWT access + refresh tokens
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.keys = keys
    app.state.database = database
    app.state.pipeline = build_pipeline(keys)
    app.state.token_issuer = TokenIssuer(keys)
    app.state.health = HealthChecker(database, keys)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(student_router, prefix="/api", tags=["Students"])

    # ========================================================================
    # ERROR HANDLERS
    # ========================================================================

    @app.exception_handler(StudentVaultError)
    async def studentvault_error_handler(request: Request, exc: StudentVaultError):
        logger.warning("Request failed", path=request.url.path, code=exc.code, status=exc.status_code)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", path=request.url.path, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={"success": False, "code": "INTERNAL_ERROR", "message": "Internal server error"},
        )

    # ========================================================================
    # HEALTH + METRICS
    # ========================================================================

    @app.get("/health")
    async def health_check():
        """Basic liveness check"""
        return app.state.health.liveness_check()

    @app.get("/health/ready")
    def health_ready():
        """Readiness probe (touches the database)"""
        result = app.state.health.readiness_check()
        status_code = 200 if result["status"] == "healthy" else 503
        return JSONResponse(status_code=status_code, content=result)

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics():
        """Prometheus metrics endpoint"""
        return get_metrics_text()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down StudentVault...")
        database.dispose()

    logger.info("StudentVault ready", database=database.engine.url.render_as_string(hide_password=True))
    return app


def main():
    """Console entry point"""
    uvicorn.run("studentvault.main:app", host="0.0.0.0", port=8000)


app = create_app()

if __name__ == "__main__":
    main()
