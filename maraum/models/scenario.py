"""Scenario models."""

from maraum.models.base import BaseSchema


class ScenarioEmbed(BaseSchema):
    """Scenario fields embedded in session responses."""

    id: int
    title: str
    emoji: str


class Scenario(ScenarioEmbed):
    """Active scenario as listed for selection."""

    sort_order: int = 0
    is_active: bool = True
    initial_message_main: str
    initial_message_helper: str

    def embed(self) -> ScenarioEmbed:
        return ScenarioEmbed(id=self.id, title=self.title, emoji=self.emoji)
