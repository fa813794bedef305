"""
# `app/main.py` - Application entry point

Builds the FastAPI app: CORS, error handlers, routers and the background
scheduler.

## Routers
- `/activities` (list, create, overview), `/activities/{id}/people`,
  `/activities/{id}/risks`, `/activities/{id}/tables`,
  `/activities/{id}/signatures`
- `/users` (lookup, own profile)
- `/hooks` (account lifecycle, shared-secret protected)

## Background scheduler
- **Library:** APScheduler (`AsyncIOScheduler`)
- **Job:** `run_reminder_sweep`, daily at `settings.reminder_hour` in `settings.timezone`
  (only when `settings.reminders_enabled`)

**Events:**
- `startup`: the notification sink is bound to the running loop; scheduler is started.
- `shutdown`: scheduler is stopped.
"""
import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.config import Settings, settings
from backend.app.core.errors import install_error_handlers
from backend.app.routers import activities, hooks, people, risks, signatures, tables, users
from backend.app.services.notifications import get_sink
from backend.app.services.reminders import run_reminder_sweep

logger = logging.getLogger("planner")


def _configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_scheduler(config: Settings = settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=config.timezone)
    scheduler.add_job(
        run_reminder_sweep,
        "cron",
        hour=config.reminder_hour,
        minute=0,
        id="activity-reminders",
        replace_existing=True,
    )
    return scheduler


def create_app(config: Settings = settings, start_scheduler: bool = True) -> FastAPI:
    _configure_logging(config)

    app = FastAPI(
        title="Activity Planner API",
        description="Backend API for planning activities: overview, people and roles, "
                    "risk assessment, tables and sign-off.",
        version="1.0.0",
        redirect_slashes=False,
    )

    # Configure CORS (allow front-end domain or all origins as specified)
    allow_origins = [o.strip() for o in config.allowed_origins.split(",")] if config.allowed_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(activities.router)
    app.include_router(people.router)
    app.include_router(risks.router)
    app.include_router(tables.router)
    app.include_router(signatures.router)
    app.include_router(users.router)
    app.include_router(hooks.router)

    @app.on_event("startup")
    async def _bind_notifications():
        get_sink().bind(asyncio.get_running_loop())

    if start_scheduler and config.reminders_enabled:
        scheduler = create_scheduler(config)

        @app.on_event("startup")
        async def _startup_scheduler():
            if not scheduler.running:
                scheduler.start()
            logger.info("Reminder sweep scheduled daily at %02d:00 %s", config.reminder_hour, config.timezone)

        @app.on_event("shutdown")
        async def _shutdown_scheduler():
            if scheduler.running:
                scheduler.shutdown(wait=False)

    return app


app = create_app()

# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000, reload=True)
