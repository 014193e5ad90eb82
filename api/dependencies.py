# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-07
# Updated: 2026-02-14
# Description: dependencies.py
# -----------------------------------------------------------------------------
from functools import lru_cache

from fastapi import HTTPException

from api.AppContainer import AppContainer
from services.HealthService import HealthService
from services.RetrievalService import RetrievalService
from services.TutorChatService import TutorChatService


@lru_cache
def get_app_container() -> AppContainer:
    # built on first request so importing the app stays cheap
    return AppContainer()


def shutdown_app_container() -> None:
    if get_app_container.cache_info().currsize:
        get_app_container().close()
        get_app_container.cache_clear()


def get_retrieval_service() -> RetrievalService:
    return get_app_container().retrieval_service


def get_chat_service() -> TutorChatService:
    svc = get_app_container().chat_service
    if svc is None:
        raise HTTPException(status_code=503, detail="chat is not configured (missing OPENAI_API_KEY)")
    return svc


def get_health_service() -> HealthService:
    return get_app_container().health_service
