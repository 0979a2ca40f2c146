from functools import lru_cache

from zapfin.bot.corrections import CorrectionTracker
from zapfin.bot.router import MessageRouter
from zapfin.config import get_settings
from zapfin.confirmation.cache import ConfirmationCache
from zapfin.db.repository import LedgerRepository
from zapfin.llm.parser import IntentParser
from zapfin.whatsapp.client import WhatsAppClient
from zapfin.whatsapp.dedup import RecentMessageIds

settings = get_settings()


@lru_cache
def get_repo() -> LedgerRepository:
    return LedgerRepository(settings.db_path)


@lru_cache
def get_parser() -> IntentParser:
    return IntentParser(api_key=settings.openrouter_api_key, model=settings.llm_model)


@lru_cache
def get_cache() -> ConfirmationCache:
    return ConfirmationCache(
        timeout=settings.confirmation_timeout_seconds,
        max_contexts=settings.confirmation_max_contexts,
        sweep_interval=settings.confirmation_sweep_interval_seconds,
    )


@lru_cache
def get_corrections() -> CorrectionTracker:
    return CorrectionTracker(timeout=settings.correction_timeout_seconds)


@lru_cache
def get_router() -> MessageRouter:
    return MessageRouter(get_repo(), get_parser(), get_cache(), get_corrections())


@lru_cache
def get_whatsapp() -> WhatsAppClient:
    return WhatsAppClient(settings.whatsapp_access_token, settings.whatsapp_phone_number_id)


@lru_cache
def get_seen_messages() -> RecentMessageIds:
    return RecentMessageIds(max_size=settings.webhook_dedup_size)

