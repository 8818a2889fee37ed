from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voicenav.api.routes import router
from voicenav.core.config import get_settings
from voicenav.core.logging import configure_logging, get_logger
from voicenav.services.errors import (
    InvalidBatch,
    NavigationError,
    ResolutionAmbiguous,
)


_logger = get_logger(__name__)


async def _confirmation_required(_request: Request, exc: ResolutionAmbiguous) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=exc.to_payload())


async def _invalid_batch(_request: Request, exc: InvalidBatch) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


async def _providers_unavailable(request: Request, exc: NavigationError) -> JSONResponse:
    _logger.error(
        "Request failed upstream",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "Location or routing providers are unavailable right now"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.debug)

    application = FastAPI(title="VoiceNav API", version="0.1.0", debug=settings.debug)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Handlers resolve by exception MRO, so the subclasses win over NavigationError.
    application.add_exception_handler(ResolutionAmbiguous, _confirmation_required)
    application.add_exception_handler(InvalidBatch, _invalid_batch)
    application.add_exception_handler(NavigationError, _providers_unavailable)

    application.include_router(router)

    @application.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
