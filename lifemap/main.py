"""FastAPI application entry point."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lifemap.api import router as api_router
from lifemap.core.errors import (
    AuthorizationError,
    InvalidInputError,
    NotFoundError,
    OracleConfigurationError,
    OracleError,
    ParseError,
)
from lifemap.core.logging import get_logger

logger = get_logger(__name__)

GENERATION_FAILED = "Generation failed. Please try again."

app = FastAPI(
    title="Lifemap Engine",
    description="Life timeline and mission planning service with AI prediction adaptation",
    version="0.1.0",
)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Not authenticated"},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"{exc.entity} not found"})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(OracleError)
async def oracle_error_handler(request: Request, exc: OracleError) -> JSONResponse:
    logger.error(f"Oracle failure on {request.url.path}: {exc!r}")
    return JSONResponse(status_code=502, content={"detail": GENERATION_FAILED})


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError) -> JSONResponse:
    logger.error(f"Unparseable oracle output on {request.url.path}: {exc.reason}; raw={exc.raw[:500]!r}")
    return JSONResponse(status_code=502, content={"detail": GENERATION_FAILED})


@app.exception_handler(OracleConfigurationError)
async def oracle_configuration_handler(request: Request, exc: OracleConfigurationError) -> JSONResponse:
    logger.error(f"Generation oracle is not configured: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Generation is not available"})


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
