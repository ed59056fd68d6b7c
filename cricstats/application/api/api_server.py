from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from cricstats.application.api.dependencies import AgentContainer
from cricstats.application.api.route import agent, seed, sessions
from cricstats.application.websocket import ws_server
from cricstats.infrastructure.config.settings import Settings, get_settings
from cricstats.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[AgentContainer] = None,
) -> FastAPI:
    """Build the API application around one shared set of collaborators"""

    settings = settings or get_settings()
    container = container or AgentContainer.build(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API server started", app_env=settings.app_env)
        yield
        # Disconnect all active connections
        for connection_id in list(container.connection_manager.active_connections):
            await container.connection_manager.disconnect(connection_id)
        await container.store.close()
        logger.info("API server shutdown")

    app = FastAPI(title="Cricket Stats Agent", version="1.0.0", lifespan=lifespan)
    app.state.container = container

    # CORS: allow local frontend during development
    if settings.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(agent.router)
    app.add_exception_handler(RequestValidationError, agent.ask_validation_error_handler)
    app.include_router(sessions.router)
    app.include_router(seed.router)
    app.include_router(ws_server.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(container.connection_manager.active_connections),
            "metrics": metrics.get_metrics_summary(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
