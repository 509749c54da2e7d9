from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from app.routes import users, messages, conversations, presence as presence_routes
from app.db.session import engine, Base
from app.core.config import settings
from app.core.exceptions import MessagingError
from app.core.presence import presence, run_sweeper
from app.utils.logger import configure_logging, get_logger
from dotenv import load_dotenv
import asyncio
import json
import time

load_dotenv()

configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = get_logger(__name__)


# Custom JSON encoder that preserves Unicode characters (emojis)
class UnicodeJSONResponse(JSONResponse):
    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    sweeper = asyncio.create_task(run_sweeper(presence))
    logger.info("Messaging API started", database=engine.url.get_backend_name())
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.info("Messaging API stopped")


app = FastAPI(
    title="Messaging API",
    description="Direct and group conversations with roles, receipts and typing presence",
    version="1.0.0",
    openapi_tags=[
        {"name": "Users", "description": "User search endpoints"},
        {"name": "Conversations", "description": "Conversation, membership and role endpoints"},
        {"name": "Messages", "description": "Message management endpoints"},
        {"name": "Presence", "description": "Typing indicator endpoints"},
    ],
    lifespan=lifespan,
    # Configure default JSON response class to preserve Unicode
    default_response_class=UnicodeJSONResponse
)


# Add request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming API requests"""
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        client=request.client.host if request.client else None,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response

# Configure CORS - MUST be added before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    origin = request.headers.get("origin")
    headers = {}
    if origin in settings.CORS_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


# Global exception handlers to ensure CORS headers are included in error responses
@app.exception_handler(MessagingError)
async def messaging_exception_handler(request: Request, exc: MessagingError):
    """Map domain errors to their status code and stable error code"""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request rejected",
        path=request.url.path,
        code=exc.error_code,
        status=exc.status_code,
        detail=exc.message,
    )
    headers = _cors_headers(request)
    if exc.retryable:
        headers["Retry-After"] = "1"
    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
        headers=headers
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions and ensure CORS headers are included"""
    headers = _cors_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with CORS headers"""
    return UnicodeJSONResponse(
        status_code=422,
        content=jsonable_encoder({"detail": exc.errors(), "code": "VALIDATION_ERROR"}),
        headers=_cors_headers(request)
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions and ensure CORS headers are included"""
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return UnicodeJSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"},
        headers=_cors_headers(request)
    )


# Include routers (every endpoint resolves the caller through get_current_user_id)
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(conversations.router, prefix="/api/conversations", tags=["Conversations"])
app.include_router(presence_routes.router, prefix="/api/conversations", tags=["Presence"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])

@app.get("/")
async def root():
    return {"message": "Welcome to the Messaging API"}

@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}

# Run uvicorn server when file is executed directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
