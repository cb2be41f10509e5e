import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from quizly.routes import alerts, analytics, attempts, auth, network, notifications, question_sets, sessions, tests
from quizly.db.base import Base
from quizly.db.sessions import engine
from quizly.core.config import settings
from quizly.core.exceptions import QuizlyError
from quizly.core.logging import configure_logging
from quizly.services.session_registry import registry

# Import all models to ensure they're registered with Base
import quizly.models

logger = configure_logging()

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Proctored MCQ test platform for faculty and their followers"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router)
app.include_router(network.router)
app.include_router(question_sets.router)
app.include_router(tests.router)
app.include_router(notifications.router)
app.include_router(sessions.router)
app.include_router(alerts.router)
app.include_router(attempts.router)
app.include_router(analytics.router)


@app.exception_handler(QuizlyError)
async def quizly_error_handler(request: Request, exc: QuizlyError):
    logging.getLogger("quizly.api").info(
        "%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error"},
    )


@app.on_event("startup")
async def startup_event():
    logger.info("%s v%s starting", settings.APP_NAME, settings.APP_VERSION)
    logger.info("Database connected")
    logger.info("JWT authentication enabled, violation limit %d", settings.VIOLATION_LIMIT)
    if settings.SESSION_SWEEP_SECONDS > 0:
        app.state.sweeper = asyncio.create_task(sweep_sessions(settings.SESSION_SWEEP_SECONDS))


@app.on_event("shutdown")
async def shutdown_event():
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        sweeper.cancel()


async def sweep_sessions(interval: int):
    """Time out and record sessions whose students never came back."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(registry.sweep)
        except Exception:
            logger.exception("Session sweep failed")


@app.get("/health")
def health():
    return {"status": "ok"}
