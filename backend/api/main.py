"""
FastAPI main application.
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import API_V1_PREFIX, CORS_ORIGINS, VALIDATE_CONFIG_ON_STARTUP
from core.config_validator import ConfigValidator
from core.errors import (
    FormatError,
    GenerationError,
    PipelineBusy,
    PrerequisiteMissing,
    TransientError,
    ValidationError,
)
from api.dependencies import AppServices, build_services
from api.routes import chat, courses, generate


def status_for(error: GenerationError) -> int:
    """HTTP status for a generation failure."""
    if isinstance(error, PipelineBusy):
        return 409
    if isinstance(error, (ValidationError, PrerequisiteMissing)):
        return 400
    if isinstance(error, FormatError):
        return 502
    if isinstance(error, TransientError):
        return 503
    return 500


def create_app(
    services: Optional[AppServices] = None,
    validate_on_startup: bool = VALIDATE_CONFIG_ON_STARTUP,
) -> FastAPI:
    app = FastAPI(
        title="Course Generator API",
        description="AI-assisted course generation and practice",
        version="1.0.0",
    )
    app.state.services = services or build_services()

    @app.on_event("startup")
    async def validate_configuration():
        """Validate configuration on application startup."""
        if not validate_on_startup:
            return

        print("🔍 Validating configuration...")

        validation_result = ConfigValidator().validate_all()

        for warning in validation_result["warnings"]:
            print(f"⚠️  WARNING: {warning}")

        if not validation_result["valid"]:
            print("\n❌ CONFIGURATION ERRORS DETECTED:\n")
            for error in validation_result["errors"]:
                print(f"   ❌ {error}")
            print("\n🛑 Application startup aborted due to configuration errors.\n")
            raise SystemExit(1)

        print("✅ Configuration validated successfully\n")

    @app.on_event("shutdown")
    async def close_clients():
        await app.state.services.adapter.client.aclose()

    @app.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError):
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": exc.message, "kind": exc.kind},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generate.router, prefix=f"{API_V1_PREFIX}/generate", tags=["generate"])
    app.include_router(chat.router, prefix=f"{API_V1_PREFIX}/chat", tags=["chat"])
    app.include_router(courses.router, prefix=f"{API_V1_PREFIX}/courses", tags=["courses"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Course Generator API", "version": "1.0.0"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
