import asyncio
import logging
import logging.config
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from palmscan.api import router
from palmscan.config.settings import LOGGING_CONFIG, WEIGHT_PATH
from palmscan.services import DiagnosisSession

logger = logging.getLogger(__name__)


def create_app(
    session: Optional[DiagnosisSession] = None,
    model_path: Path = WEIGHT_PATH,
    configure_logging: bool = True
) -> FastAPI:
    """
    Build the palm diagnosis API

    Args:
        session: session to serve; a new one is created when omitted
        model_path: exported classifier loaded at startup
        configure_logging: apply LOGGING_CONFIG
    """
    if configure_logging:
        logging.config.dictConfig(LOGGING_CONFIG)

    session = session or DiagnosisSession()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The API answers "not ready" while the model is loading
        loader = None
        if not session.model_loaded:
            loader = asyncio.create_task(session.load_model(model_path=model_path))
        logger.info("Palm diagnosis API started")
        yield
        if loader is not None and not loader.done():
            loader.cancel()
        session.close()
        logger.info("Palm diagnosis API stopped")

    app = FastAPI(
        title="Palm Leaf Disease Diagnosis API",
        description="Palm leaf disease recognition with a leaf plausibility filter",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/")
    def root():
        return {
            "message": "Palm leaf diagnosis API. Open /docs to try it out"
        }

    return app
