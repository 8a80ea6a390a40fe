from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes.accounts import router as accounts_router
from app.config import Settings
from app.services.signup_service import SignupContext, build_context
from app.utils.logging import logger


def create_app(context: Optional[SignupContext] = None) -> FastAPI:
    """
    Application factory for better structure and easier testing.

    Tests pass a ready-made context (temporary store + stub identity client);
    otherwise the context is built from environment settings.
    """
    if context is None:
        context = build_context(Settings.from_env())
    settings = context.settings

    app = FastAPI(
        title="Signup Gatekeeper API",
        version="1.0.0",
        description="Account creation guarded by device identification: one account per device, no bots.",
    )
    app.state.signup_context = context

    # Permissive CORS by default (development posture); restrict with CORS_ALLOW_ORIGINS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(request: Request, exc: RequestValidationError):
        # Malformed JSON or wrongly typed fields are client errors, reported as 400.
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": jsonable_errors(exc)},
        )

    # Fallback for routes without their own handling; responds from outside CORSMiddleware.
    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(accounts_router, prefix=settings.signup_path.rstrip("/") or "/create-account")

    @app.get("/health", tags=["system"])
    def health_check():
        return {"status": "ok"}

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
