"""
AI Twin API Server

FastAPI application exposing the twin's chat endpoint.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ai_twin.config import TwinConfig, load_config
from ai_twin.engine.twin_engine import TwinOrchestrator

logger = logging.getLogger("ai_twin.api")

# Global twin instance (lazy initialized)
config: Optional[TwinConfig] = None
twin: Optional[TwinOrchestrator] = None
_twin_lock = asyncio.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler - the twin is initialized on first request."""
    yield
    
    # Cleanup on shutdown
    global twin
    if twin is not None and hasattr(twin, "close"):
        await twin.close()
    twin = None


app = FastAPI(
    title="AI Twin API",
    description="Chat with a persona-constrained AI twin",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_config() -> TwinConfig:
    """Get the loaded configuration, reading it on first use."""
    global config
    if config is None:
        config = load_config()
    return config


async def get_twin() -> TwinOrchestrator:
    """
    Get the global twin instance, initializing it if needed.
    
    Raises:
        StoreUnavailableError: If the memory store cannot be reached
    """
    global twin
    
    if twin is not None:
        return twin
    
    async with _twin_lock:
        # Another request may have finished initializing while we waited
        if twin is None:
            instance = TwinOrchestrator.from_config(get_config())
            await instance.initialize()
            twin = instance
            logger.info("AI twin initialized")
    return twin


def set_twin(instance: Optional[TwinOrchestrator]) -> None:
    """Install a pre-built twin (or clear it), along with its configuration."""
    global twin, config
    twin = instance
    config = instance.config if instance is not None else None


# Import and include routers
from ai_twin.api.routes import chat  # noqa: E402

app.include_router(chat.router, prefix="/api/twin", tags=["Twin"])


@app.get("/")
async def root():
    """Liveness endpoint."""
    return {"status": "ok", "service": "AI Twin API"}
