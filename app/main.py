import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.cache import build_cache
from app.config import settings
from app.database import create_tables
from app.logging_config import configure_logging
from app.middleware import TimingMiddleware
from app.routers import comments, metrics
from app.schemas import RestResponse

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()
    app.state.cache = build_cache()
    await app.state.cache.connect()
    logger.info("Comment service started (cache=%s)", app.state.cache.backend)
    yield
    # Shutdown
    await app.state.cache.disconnect()


app = FastAPI(
    title="Comment Service",
    description="Threaded comments with cached post/comment existence checks",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Comment routes answer an unparseable body with the envelope, not a 422.
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if not request.url.path.startswith(comments.router.prefix):
        return await request_validation_exception_handler(request, exc)
    messages = [str(error.get("msg", "")) for error in exc.errors()]
    logger.warning("Unparseable request body on %s: %s", request.url.path, messages)
    envelope = RestResponse.failed("Validation Error!", err={"messages": messages})
    return JSONResponse(status_code=envelope.status, content=envelope.model_dump(mode="json"))


# Routers
app.include_router(comments.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}
