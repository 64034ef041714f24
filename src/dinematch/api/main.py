"""
DineMatch API - FastAPI ingress for store change notifications, ratings and
manual sweep triggers.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dinematch import __version__
from dinematch.bootstrap import Services, build_sqlalchemy_services

from .routes import changes, jobs, ratings

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="DineMatch API",
        description="Group-dining matching, arrival codes, trust scores and plan sweeps",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "version": __version__}

    app.include_router(changes.router, prefix="/api", tags=["Changes"])
    app.include_router(ratings.router, prefix="/api", tags=["Ratings"])
    app.include_router(jobs.router, prefix="/api", tags=["Jobs"])

    @app.on_event("startup")
    async def _startup_services():
        if app.state.services is None:
            app.state.services = build_sqlalchemy_services()
            logger.info("Services ready (sqlalchemy)")

    @app.on_event("shutdown")
    async def _shutdown_services():
        if app.state.services is not None:
            await app.state.services.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
