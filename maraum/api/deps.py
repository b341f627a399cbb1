"""FastAPI dependency providers.

Long-lived collaborators (store, provider client, prompt registry) are built
once and cached; request-scoped services are assembled from them. Tests swap
them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from maraum.core.supabase import get_supabase_client
from maraum.services.event_log import EventLog
from maraum.services.gemini_service import GeminiClient
from maraum.services.message_service import MessageService
from maraum.services.prompt_service import PromptBuilder, PromptRegistry
from maraum.services.scenario_service import ScenarioService
from maraum.services.session_service import SessionService
from maraum.services.store import SupabaseStore


@lru_cache
def get_store() -> SupabaseStore:
    return SupabaseStore(get_supabase_client())


@lru_cache
def get_provider() -> GeminiClient:
    return GeminiClient()


@lru_cache
def get_prompt_registry() -> PromptRegistry:
    return PromptRegistry.load()


def get_event_log(store: SupabaseStore = Depends(get_store)) -> EventLog:
    return EventLog(store)


def get_scenario_service(store: SupabaseStore = Depends(get_store)) -> ScenarioService:
    return ScenarioService(store)


def get_session_service(
    store: SupabaseStore = Depends(get_store),
    event_log: EventLog = Depends(get_event_log),
) -> SessionService:
    return SessionService(store, event_log)


def get_message_service(
    store: SupabaseStore = Depends(get_store),
    sessions: SessionService = Depends(get_session_service),
    provider: GeminiClient = Depends(get_provider),
    registry: PromptRegistry = Depends(get_prompt_registry),
    event_log: EventLog = Depends(get_event_log),
) -> MessageService:
    return MessageService(
        store,
        sessions,
        provider,
        PromptBuilder(registry, store),
        event_log=event_log,
    )
