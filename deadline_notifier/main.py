"""Main FastAPI application for the assignment deadline notifier."""
import asyncio
import logging
from typing import Optional

from fastapi import FastAPI

from deadline_notifier import __version__
from deadline_notifier.config import get_settings
from deadline_notifier.dependencies import ServiceContainer, build_container
from deadline_notifier.routers import notifications, reminders
from deadline_notifier.utils.metrics import metrics_collector
from deadline_notifier.worker import SweepWorker

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    With no container the SQL-backed one is built on startup and the tables
    are created; a given container is used as is.
    """
    app = FastAPI(
        title="Assignment Deadline Notifier API",
        description="Reminder scheduling, sweep dispatch and notification fan-out for assignment deadlines",
        version=__version__,
    )
    app.state.container = container
    app.state.worker = None
    app.state.worker_task = None

    @app.on_event("startup")
    async def startup_event():
        """Initialize database, services and the sweep worker on startup."""
        if app.state.container is None:
            from deadline_notifier.db.config import get_engine
            from deadline_notifier.db.init import init_db

            try:
                init_db(get_engine())
                logger.info("Database tables initialized successfully.")
            except Exception as e:
                logger.warning(f"Database initialization failed: {str(e)}")
                logger.warning("Server will continue but database operations may fail.")
            app.state.container = build_container(get_engine(), get_settings())

        for sender in app.state.container.senders.values():
            await sender.initialize()

        settings = app.state.container.settings
        if settings.enable_sweep_worker:
            worker = SweepWorker(app.state.container.dispatcher, settings.sweep_interval_seconds)
            app.state.worker = worker
            app.state.worker_task = asyncio.create_task(worker.run_forever())
            logger.info("Sweep worker scheduled.")

        logger.info("Application startup complete.")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the sweep worker, wait for its current sweep, then release senders."""
        if app.state.worker is not None:
            app.state.worker.stop()
            await app.state.worker_task
            app.state.worker = None
            app.state.worker_task = None

        for sender in app.state.container.senders.values():
            await sender.cleanup()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics")
    async def get_metrics():
        """Counters and timers for scheduling, claims and deliveries."""
        return metrics_collector.get_metrics()

    app.include_router(reminders.router, prefix="/api")  # /api/assignments/{id}/reminders, /api/reminders/...
    app.include_router(notifications.router, prefix="/api")  # /api/{recipient_id}/notifications

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "deadline_notifier.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
