import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from watchhive.api.routes_api import router as api_router
from watchhive.api.routes_lists import router as lists_router
from watchhive.api.routes_progress import router as progress_router
from watchhive.core.auth import TrustedIdentityMiddleware
from watchhive.core.config import get_settings
from watchhive.core.database import create_db_and_tables
from watchhive.core.errors import WatchHiveError

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Application lifespan context manager."""
    create_db_and_tables()
    logger.info("WatchHive started")
    yield


app = FastAPI(
    title="WatchHive",
    description="Track watched movies and series, wishlists and custom lists",
    version="0.1.0",
    lifespan=app_lifespan,
)

app.add_middleware(TrustedIdentityMiddleware)


@app.exception_handler(WatchHiveError)
async def watchhive_error_handler(request: Request, exc: WatchHiveError):
    if exc.public:
        message = exc.message
    else:
        logger.error(
            "%s %s failed: %s (cause: %r)",
            request.method,
            request.url.path,
            exc.message,
            exc.original_exception,
        )
        message = "Internal server error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"error": message, "code": "validation_error"},
    )


# Include routers
app.include_router(api_router, prefix="/api")
app.include_router(progress_router, prefix="/api")
app.include_router(lists_router, prefix="/api")
