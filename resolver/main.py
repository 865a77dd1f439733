# resolver/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resolver.core.config import get_settings
from resolver.core.database import init_db
from resolver.core.errors import ValidationError
from resolver.core.logging import setup_logging
from resolver.reference.routes import router as reference_router
from resolver.ticket.routes import router as ticket_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESC,
    version=settings.APP_VERSION,
)

origins = settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc} {exc.field_errors}")
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "field_errors": exc.field_errors},
    )


# Routers
app.include_router(ticket_router)
app.include_router(reference_router)

@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}
