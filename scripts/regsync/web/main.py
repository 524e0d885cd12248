"""
FastAPI application exposing the administrative trigger surface.
"""

from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from regsync import __version__
from regsync.services import ServiceContext
from regsync.web.health import router as health_router
from regsync.web.lifespan import lifespan
from regsync.web.routes import admin, records

# Load .env before anything else
load_dotenv()


def create_app(context: Optional[ServiceContext] = None) -> FastAPI:
    """Create the app. Without a context, the lifespan builds one from config."""
    app = FastAPI(
        title="Regulatory Source Sync",
        description="Data source orchestration for regulatory intelligence",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    app.include_router(health_router)
    app.include_router(admin.router, prefix="/admin")
    app.include_router(records.router, prefix="/admin")
    return app


app = create_app()
