"""FastAPI application for the intern rotation engine."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db
from .errors import CUSTOM_ERRORS, RotationError
from .logging_setup import get_logger, setup_logging
from .routers import interns, units

settings = get_settings()
setup_logging(settings.log_level, settings.log_file)
logger = get_logger(__name__)

# Create tables
init_db()

app = FastAPI(
    title="Intern Rotation Engine",
    description="Round-robin rotation scheduling with lazy auto-advance",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins in development
    allow_credentials=False,  # Must be False when allow_origins is "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RotationError)
async def rotation_error_handler(request: Request, exc: RotationError):
    status_code = next((code for cls, code in CUSTOM_ERRORS.items() if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("Unhandled engine error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": type(exc).__name__, "detail": str(exc)})


app.include_router(interns.router, prefix="/api/interns", tags=["interns"])
app.include_router(units.router, prefix="/api/units", tags=["units"])


@app.get("/")
def root():
    return {"message": "Intern Rotation Engine API", "docs": "/docs"}
