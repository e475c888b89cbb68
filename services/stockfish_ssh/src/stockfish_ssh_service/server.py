"""
Stockfish SSH HTTP Server

Exposes position analysis and an SSH health check over a small JSON API.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from common import SSHConnectionError, register_exception_handlers

from . import __version__
from .config import EngineConfig, ServerConfig, SSHConfig
from .notation import AnalyzeRequest
from .service import AnalysisService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_TITLE = "stockfish-ssh-service API"
API_VERSION = __version__

# Seconds between client disconnect checks while a search runs
DISCONNECT_POLL_INTERVAL = 0.5


class AnalyzeBody(BaseModel):
    """Analyze request body; exactly one field is normally populated."""

    fen: str = Field(
        "",
        description="FEN position",
        examples=["rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"],
    )
    pgn: str = Field("", description="PGN game", examples=["1. e4 e5 2. Nf3 Nc6 3. Bb5 a6"])
    uci: str = Field("", description="UCI move list", examples=["e2e4 e7e5 g1f3 b8c6"])
    san: str = Field("", description="SAN move list", examples=["e4 e5 Nf3 Nc6"])

    def to_request(self) -> AnalyzeRequest:
        return AnalyzeRequest(
            fen=self.fen.strip(),
            pgn=self.pgn.strip(),
            uci=self.uci.strip(),
            san=self.san.strip(),
        )


def create_router(service: AnalysisService, server_config: ServerConfig) -> APIRouter:
    """Build the versioned API routes bound to a service."""
    router = APIRouter(prefix="/api/v1")

    @router.get("/health", tags=["Health"])
    def health() -> Any:
        """Check SSH connectivity to the engine host."""
        try:
            service.health()
        except SSHConnectionError as e:
            logger.warning(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})
        return {"status": "ok"}

    @router.post("/analyze", tags=["Analysis"])
    async def analyze(body: AnalyzeBody, raw_request: Request) -> dict[str, Any]:
        """Analyze a position given as one of: fen, pgn, uci, san."""
        request = body.to_request()
        if server_config.strict_input:
            request.require_single_notation()

        # Search in the threadpool; a client disconnect sets the cancel event
        cancel = threading.Event()
        search = asyncio.ensure_future(run_in_threadpool(service.analyze, request, cancel))
        try:
            while not search.done():
                await asyncio.wait({search}, timeout=DISCONNECT_POLL_INTERVAL)
                if search.done() or cancel.is_set():
                    continue
                if await raw_request.is_disconnected():
                    logger.info("Client disconnected, cancelling analysis")
                    cancel.set()
        finally:
            cancel.set()

        return search.result().to_dict()

    return router


def create_app(
    service: AnalysisService | None = None,
    server_config: ServerConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Analysis service. Built from environment config if not provided.
        server_config: Server configuration.

    Returns:
        The configured application.
    """
    server_config = server_config or ServerConfig()
    service = service or AnalysisService(SSHConfig(), EngineConfig())

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description="Proxies a Stockfish engine running on a remote host over SSH.",
    )
    register_exception_handlers(app)
    app.include_router(create_router(service, server_config))
    return app


def serve(server_config: ServerConfig | None = None) -> None:
    """Start the HTTP server (blocking).

    Args:
        server_config: Server configuration.
    """
    # Environment must be populated before any config dataclass is built
    load_dotenv()
    server_config = server_config or ServerConfig()

    app = create_app(server_config=server_config)
    logger.info(f"Stockfish SSH server listening on {server_config.host}:{server_config.port}")
    uvicorn.run(app, host=server_config.host, port=server_config.port)


def main() -> None:
    serve()


if __name__ == "__main__":
    main()
