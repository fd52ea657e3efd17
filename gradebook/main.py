import logging
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gradebook.api import attendance, configuration, evaluations, subjects, indicators, periods
from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import (
    GradebookError, NotInitialized, InvalidScale, InvalidTotalLessons, DataIntegrityError,
    BatchPartialFailure, StorageError, NotFound
)
from gradebook.middleware.logging import setup_logging, add_logging_middleware

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Status code returned for each error kind, most specific first
ERROR_STATUS_CODES = (
    (NotInitialized, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidScale, 422),
    (InvalidTotalLessons, 422),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (BatchPartialFailure, status.HTTP_409_CONFLICT),
    (DataIntegrityError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the API around a database client.

    The database is initialized on startup unless it already is.
    """
    app = FastAPI(
        title="Gradebook API",
        description="API for attendance grading, evaluations and grade management",
        version="1.0.0",
    )
    app.state.database = database or Database()

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_logging_middleware(app)

    @app.exception_handler(GradebookError)
    async def gradebook_exception_handler(request: Request, exc: GradebookError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_class, code in ERROR_STATUS_CODES:
            if isinstance(exc, error_class):
                status_code = code
                break

        content = {"detail": str(exc)}
        if isinstance(exc, BatchPartialFailure):
            content["error_count"] = exc.error_count
            content["errors"] = exc.errors
        if status_code >= 500:
            logger.error(f"{type(exc).__name__}: {str(exc)}", exc_info=exc)
            if isinstance(exc, StorageError):
                content["detail"] = "A database error occurred. Please try again later."

        return JSONResponse(status_code=status_code, content=content)

    # Custom exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected error occurred. Please try again later."},
        )

    @app.on_event("startup")
    async def startup():
        await app.state.database.initialize()

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.database.close()

    # Include routers
    app.include_router(attendance.router, prefix="/api", tags=["Attendance"])
    app.include_router(configuration.router, prefix="/api", tags=["Configuration"])
    app.include_router(evaluations.router, prefix="/api", tags=["Evaluations"])
    app.include_router(subjects.router, prefix="/api", tags=["Grade Subjects"])
    app.include_router(indicators.router, prefix="/api", tags=["Indicators"])
    app.include_router(periods.router, prefix="/api", tags=["Academic Periods"])

    @app.get("/api/health", tags=["Root"])
    async def health():
        return {"status": "ok", "database": app.state.database.is_initialized}

    return app

app = create_app()

# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gradebook.main:app", host="0.0.0.0", port=5000, reload=True)
