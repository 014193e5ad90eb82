# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-07
# Updated: 2026-02-14
# Description: main.py
# -----------------------------------------------------------------------------
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.dependencies import shutdown_app_container
from api.routers import chat, documents, health, retrieve


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # flush write buffers and release the embedding model
    shutdown_app_container()


app = FastAPI(title="Offline RAG Retrieval API", lifespan=lifespan)
app.include_router(health.router)
app.include_router(documents.router)
app.include_router(retrieve.router)
app.include_router(chat.router)
