import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from legalbook.core.config import settings
from legalbook.api.routes import appointments, availability
from legalbook.schemas.appointment import ConflictingAppointment
from legalbook.services.calendar import create_shared_store
from legalbook.services.scheduling import errors

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)
app.state.calendar_store = create_shared_store()

# Set all CORS enabled origins
if settings.API_V1_STR:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# availability first, so /appointments/availability/... never reaches /appointments/{id}
app.include_router(availability.router, prefix=f"{settings.API_V1_STR}/appointments/availability", tags=["availability"])
app.include_router(appointments.router, prefix=f"{settings.API_V1_STR}/appointments", tags=["appointments"])


@app.exception_handler(errors.ValidationError)
def handle_validation_error(request: Request, exc: errors.ValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "field": exc.field, "rule": exc.rule},
    )

@app.exception_handler(errors.ConflictError)
def handle_conflict_error(request: Request, exc: errors.ConflictError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": exc.message,
            "conflicts": [
                ConflictingAppointment.model_validate(c).model_dump(mode="json")
                for c in exc.conflicts
            ],
        },
    )

@app.exception_handler(errors.ConcurrentWriteError)
def handle_concurrent_write(request: Request, exc: errors.ConcurrentWriteError):
    logger.warning("Concurrent write on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content={"detail": "Appointment was changed concurrently, retry", "conflicts": []},
    )

@app.exception_handler(errors.NotFoundError)
def handle_not_found(request: Request, exc: errors.NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(errors.AuthorizationError)
def handle_forbidden(request: Request, exc: errors.AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})

@app.exception_handler(errors.FinalizedStateError)
def handle_finalized(request: Request, exc: errors.FinalizedStateError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "status": exc.status.value},
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.on_event("startup")
def create_tables_on_startup():
    if not settings.AUTO_CREATE_TABLES:
        return

    from legalbook.db.base import Base
    from legalbook.db.session import engine

    Base.metadata.create_all(bind=engine)
    logger.info("[startup] Tables created for %s", engine.url.render_as_string(hide_password=True))
