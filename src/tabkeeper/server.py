"""
Starlette-based server hosting the tab sync service.

The browser extension connects to ``/ws/browser``; the CLI and other
presentation layers use the JSON routes.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route, WebSocketRoute

from tabkeeper.config import CONFIG
from tabkeeper.logger import get_logger, setup_logging
from tabkeeper.routes.browser_routes import browser_websocket_endpoint
from tabkeeper.routes.session_routes import get_folder, get_status, list_folders, run_command
from tabkeeper.service import TabSyncService

logger = get_logger(__name__)


def create_app(service: Optional[TabSyncService] = None) -> Starlette:
    """Build the application; a fresh TabSyncService is created when none is given."""
    service = service or TabSyncService()

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Application startup - starting tab sync service")
        await service.start()
        try:
            yield
        finally:
            logger.info("Application shutdown - stopping tab sync service")
            if service.platform is not None:
                platform = service.platform
                service.detach_platform(platform)
                if hasattr(platform, "close"):
                    await platform.close()
            await service.stop()

    app = Starlette(
        routes=[
            Route("/commands", run_command, methods=["POST"]),
            Route("/folders", list_folders, methods=["GET"]),
            Route("/folders/{folder}", get_folder, methods=["GET"]),
            Route("/status", get_status, methods=["GET"]),
            WebSocketRoute("/ws/browser", browser_websocket_endpoint),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.tab_sync = service
    return app


def main(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "INFO")
    setup_logging(level=log_level, log_file=os.getenv("LOG_FILE"))

    host = host or CONFIG.host
    port = port or CONFIG.port
    logger.info(f"Starting tabkeeper on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level=log_level.lower())


if __name__ == "__main__":
    main()
