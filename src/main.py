"""
LinguaVerse - Main Application

Language-learning reader: sign in with email/password, Google or Facebook,
keep a learner profile in Firestore and read illustrated stories page by page.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import sys
import traceback
from datetime import datetime

from src.config import get_settings
from src.services import FirebaseService, IdentityService
from src.services.logger import init_logger
from src.services.events import session_events
from src.api.routes import router
from src.api.websocket import router as websocket_router

# Configure logging to both file and console
log_dir = Path("logs")
log_dir.mkdir(exist_ok=True)
log_file = log_dir / f"linguaverse_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

# Create formatters
file_formatter = logging.Formatter(
    '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_formatter = logging.Formatter('%(message)s')

# File handler (detailed logs)
file_handler = logging.FileHandler(log_file, encoding='utf-8')
file_handler.setLevel(logging.DEBUG)
file_handler.setFormatter(file_formatter)

# Console handler (user-friendly output)
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(console_formatter)

logging.basicConfig(
    level=logging.DEBUG,
    handlers=[file_handler, console_handler]
)

logger = logging.getLogger(__name__)
logger.info(f"📝 Logging to: {log_file}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle management for the application.

    Builds the Firestore and identity services once and hangs them on
    app.state; every request and WebSocket session reads them from there.
    """
    settings = get_settings()

    print("🌍 Initializing LinguaVerse...")

    app_logger = init_logger(settings=settings)

    debug_flags = []
    if settings.debug_storage:
        debug_flags.append("Storage")
    if settings.debug_auth:
        debug_flags.append("Auth")
    if debug_flags:
        print(f"🐛 Debug logging enabled: {', '.join(debug_flags)}")
        print(f"📊 Debug logs: {settings.debug_log_dir}/")

    print("🔥 Connecting to Firebase...")
    firebase_service = FirebaseService(
        credentials_dict=settings.get_firebase_credentials_dict(),
        credentials_path=settings.google_application_credentials,
        project_id=settings.firebase_project_id,
        logger=app_logger,
        watch_check_interval=settings.firestore_watch_check_seconds
    )
    firebase_service.initialize()
    app_logger.info("Firestore connected")

    if not settings.firebase_api_key:
        app_logger.warning("FIREBASE_API_KEY not set - sign-in requests will be rejected")
    identity_service = IdentityService(
        api_key=settings.firebase_api_key,
        base_url=settings.identity_base_url,
        request_uri=settings.oauth_request_uri,
        timeout=settings.identity_timeout_seconds,
        logger=app_logger
    )

    app.state.settings = settings
    app.state.app_logger = app_logger
    app.state.firebase_service = firebase_service
    app.state.identity_service = identity_service
    app.state.events = session_events

    print(f"🚀 LinguaVerse ready at http://localhost:{settings.port}")
    print(f"📚 API docs: http://localhost:{settings.port}/docs")

    yield

    # Shutdown
    print("👋 Shutting down LinguaVerse...")
    identity_service.shutdown()
    firebase_service.shutdown()


# Create FastAPI app
app = FastAPI(
    title="LinguaVerse",
    description="""
    Language learning through illustrated stories.

    Features:
    - Email/password, Google and Facebook sign-in
    - Account linking when a social sign-in collides with an existing account
    - Live learner profile (display name, native language, streak, XP)
    - Story browser with paged reading and vocabulary popups
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS_ALLOWED_ORIGINS is "*" or a comma-separated list
_settings = get_settings()
_cors_origins = (
    ["*"] if _settings.cors_allowed_origins == "*"
    else [origin.strip() for origin in _settings.cors_allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error_details = []
    for error in errors:
        input_val = error.get('input', 'N/A')
        if isinstance(input_val, str) and len(input_val) > 100:
            input_val = input_val[:100] + "..."
        error_details.append(f"{error['loc']}: {error['msg']} (input: {input_val})")

    logger.error(f"❌ Validation Error on {request.url.path}: " + " | ".join(error_details))

    return JSONResponse(
        status_code=422,
        content={"detail": errors}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions.
    Logs the error and returns a friendly error message with an id for log lookup.
    """
    error_id = datetime.now().strftime('%Y%m%d_%H%M%S_%f')

    logger.error(f"❌ UNHANDLED EXCEPTION [{error_id}]")
    logger.error(f"   Path: {request.url.path}")
    logger.error(f"   Method: {request.method}")
    logger.error(f"   Error: {type(exc).__name__}: {exc}")
    logger.error(f"   Traceback:\n{traceback.format_exc()}")

    # Never expose exception details here; error_id finds them in the logs
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please try again."
        }
    )


# Include routes
app.include_router(router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Root endpoint - API info"""
    return {
        "message": "Welcome to LinguaVerse!",
        "session": "/ws/session",
        "docs": "/docs",
        "health": "/api/health",
        "version": "1.0.0"
    }


def main():
    """Run the application"""
    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
