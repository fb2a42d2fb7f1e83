import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .errors import INVALID_REQUEST_ERROR, ApiError
from .logging_config import configure_logging
from .routers import auth as auth_router
from .routers import pages as pages_router
from .routers import todos as todos_router
from .settings import get_settings

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Sign-in, session and sign-out endpoints."},
    {
        "name": "todos",
        "description": "Session-gated CRUD for the signed-in user's todos, plus a live stream.",
    },
    {"name": "pages", "description": "Login and dashboard guards."},
]

_settings = get_settings()
configure_logging(_settings)
logger = logging.getLogger(__name__)

if _settings.using_dev_secret:
    logger.warning("JWT_SECRET is not set; sessions are signed with the development secret")

app = FastAPI(
    title="firetodo",
    description="Per-user todo lists behind stateless sessions bridged to a hosted document store.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# OAuth state between the sign-in redirect and the provider callback
app.add_middleware(SessionMiddleware, secret_key=_settings.jwt_secret, https_only=_settings.secure_cookie)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """
    Render ApiError as `{"error": ...}` with its status code.
    """
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error})


# Global exception handlers for consistent JSON on validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    The todo API answers malformed bodies with 400:
        {"error": "400 Invalid Request.", "detail": [...]}

    Everything else keeps the 422 format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    if request.url.path.startswith(todos_router.router.prefix):
        return JSONResponse(
            status_code=400,
            content={"error": INVALID_REQUEST_ERROR, "detail": jsonable_errors(exc)},
        )
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return jsonable_encoder(exc.errors())


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(auth_router.router)
app.include_router(todos_router.router)
app.include_router(pages_router.router)
