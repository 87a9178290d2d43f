# src/parallelai_backend/app/main.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv

# Load .env before any module reads credentials or JWT settings
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parallelai_backend.app.core.logging import setup_logging
from parallelai_backend.app.db.init_db import init_models
from parallelai_backend.app.db.session import check_connection
from parallelai_backend.app.api.routes.chat import router as chat_router
from parallelai_router.adapters.groq import GroqClientFactory
from parallelai_router.core.config import load_registry
from parallelai_router.core.consensus import ConsensusSynthesizer
from parallelai_router.core.fanout import FanOutOrchestrator
from parallelai_router.core.invoke import ClientFactory, ModelInvoker
from parallelai_router.core.registry import ProviderRegistry

setup_logging()
logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


def create_app(
    registry: Optional[ProviderRegistry] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """
    Build the API.

    Without an explicit registry the provider table is loaded here, so a
    missing credential (ProviderUnavailable) aborts startup instead of
    failing requests later.

      uvicorn --factory parallelai_backend.app.main:create_app
    """
    if registry is None:
        registry = load_registry()

    factory = client_factory or GroqClientFactory()
    invoker = ModelInvoker(factory)

    app = FastAPI(title="ParallelAI API", version="0.1.0")
    app.state.registry = registry
    app.state.orchestrator = FanOutOrchestrator(registry, invoker)
    app.state.synthesizer = ConsensusSynthesizer(registry, invoker)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await init_models()
        await check_connection()
        logger.info("serving %d providers: %s", len(registry), ", ".join(registry.model_ids()))

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if isinstance(factory, GroqClientFactory):
            await factory.aclose()

    @app.get("/healthz")
    async def health():
        return {"status": "ok"}

    return app
