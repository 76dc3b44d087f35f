import logging

import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import CORS_ALLOW_ORIGINS, LOG_LEVEL
from router import router
from models.db import init_db
from llm import initialize_models
from services.live_store import reset_live_store

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    await initialize_models()
    logger.info("Volunteer Connect API ready")
    yield
    # Shutdown: let queued writes land before the process exits
    reset_live_store()

app = FastAPI(
    title="Volunteer Connect",
    description="Volunteer opportunities, applications and admin review for NGOs.",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")
if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
