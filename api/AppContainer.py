# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-20
# Updated: 2026-02-14
# Description: AppContainer.py
# -----------------------------------------------------------------------------
from typing import Optional

from chat.OpenAIChat import OpenAIChat
from config.Config import Config
from services.HealthService import HealthService
from services.RetrievalService import RetrievalService
from services.TutorChatService import TutorChatService
from utility.logging_utils import get_class_logger


class AppContainer:
    """
    Owns heavy object instantiation and application wiring.
    Singleton instances are provided via FastAPI dependencies.
    """

    def __init__(self, cfg: Optional[Config] = None) -> None:
        self.logger = get_class_logger(self.__class__)

        # Configuration
        self.cfg = cfg or Config.from_env()
        self.logger.info("Config: %s", self.cfg.summary())

        # Core retrieval engine (provider + per-version indexes)
        self.retrieval_service = RetrievalService(cfg=self.cfg)
        self.retrieval_service.start()

        # Generation collaborator is optional; retrieval works without it
        self.openai_chat = self._build_chat()
        self.chat_service: Optional[TutorChatService] = None
        if self.openai_chat is not None:
            self.chat_service = TutorChatService(
                retrieval_service=self.retrieval_service,
                chat_client=self.openai_chat,
                rerank=self.cfg.rerank_enabled,
            )

        self.health_service = HealthService(
            retrieval_service=self.retrieval_service,
            chat_healthcheck=self.openai_chat.healthcheck if self.openai_chat else None,
        )

    def _build_chat(self) -> Optional[OpenAIChat]:
        if not self.cfg.openai_api_key:
            self.logger.warning("OPENAI_API_KEY not set; /chat is disabled")
            return None
        return OpenAIChat(cfg=self.cfg)

    def close(self) -> None:
        self.retrieval_service.close()
