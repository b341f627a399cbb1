"""Prompt templates and provider request assembly.

Templates are markdown files shipped in ``maraum/prompts``. They are read
once at startup into an immutable registry; each template carries a short
content hash as its version so logs can tell which text produced a turn.
"""

import hashlib
import logging
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from maraum.core.config import Settings, get_settings
from maraum.core.errors import NotFoundError
from maraum.models.message import ChatType, Message
from maraum.models.session import Session
from maraum.services.gemini_service import ProviderRequest, ProviderTurn
from maraum.services.store import SupabaseStore

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
HELPER_KEY = "helper"

# Scenario id -> template file under prompts/scenarios
SCENARIO_TEMPLATES = {
    1: "marketplace",
    2: "party",
    3: "kebab",
}


class PromptTemplate(BaseModel):
    """One immutable prompt template."""

    model_config = ConfigDict(frozen=True)

    key: str
    text: str
    version: str


def _template(key: str, text: str) -> PromptTemplate:
    text = text.strip()
    version = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return PromptTemplate(key=key, text=text, version=version)


class PromptRegistry:
    """Read-only map of prompt templates keyed by channel and scenario."""

    def __init__(self, templates: dict[str, PromptTemplate]) -> None:
        self._templates = MappingProxyType(dict(templates))

    @classmethod
    def load(cls, directory: Path = PROMPTS_DIR) -> "PromptRegistry":
        """Load every template from disk."""
        templates = {
            HELPER_KEY: _template(HELPER_KEY, (directory / "helper.md").read_text(encoding="utf-8")),
        }
        for name in SCENARIO_TEMPLATES.values():
            key = f"main:{name}"
            path = directory / "scenarios" / f"{name}.md"
            templates[key] = _template(key, path.read_text(encoding="utf-8"))

        registry = cls(templates)
        logger.info(
            "Loaded prompt templates: "
            + ", ".join(f"{t.key}@{t.version}" for t in registry.templates.values())
        )
        return registry

    @property
    def templates(self) -> MappingProxyType:
        return self._templates

    def main(self, scenario_id: int) -> PromptTemplate:
        name = SCENARIO_TEMPLATES.get(scenario_id)
        template = self._templates.get(f"main:{name}") if name else None
        if template is None:
            raise NotFoundError("No prompt template for scenario", {"scenarioId": scenario_id})
        return template

    def helper(self) -> PromptTemplate:
        return self._templates[HELPER_KEY]


def to_provider_turn(message: Message) -> ProviderTurn:
    return ProviderTurn(role="user" if message.is_user else "model", text=message.content)


class PromptBuilder:
    """Builds the provider request for one human turn."""

    def __init__(
        self,
        registry: PromptRegistry,
        store: SupabaseStore,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.settings = settings or get_settings()

    async def build(self, session: Session, user_message: Message) -> ProviderRequest:
        """System context, recent turns on the channel and the new turn.

        The current human turn is excluded from the history window since it
        is sent as the new turn.
        """
        if user_message.chat_type == ChatType.MAIN:
            system_instruction = self.registry.main(session.scenario_id).text
            window = self.settings.main_history_window
        else:
            system_instruction = await self._helper_context(session)
            window = self.settings.helper_history_window

        history = await self.store.recent_messages(
            session.id, user_message.chat_type, window, exclude_id=user_message.id
        )
        return ProviderRequest(
            chat_type=user_message.chat_type,
            system_instruction=system_instruction,
            history=[to_provider_turn(m) for m in history],
            message=user_message.content,
        )

    async def _helper_context(self, session: Session) -> str:
        text = self.registry.helper().text
        main_history = await self.store.recent_messages(
            session.id, ChatType.MAIN, self.settings.helper_main_context_window
        )
        if not main_history:
            return text
        lines = "\n".join(f"[{m.role.value}]: {m.content}" for m in main_history)
        return f"{text}\n\n--- Recent Main Chat Context ---\n{lines}\n---"
