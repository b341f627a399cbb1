"""Scenario catalogue."""

from maraum.core.errors import NotFoundError
from maraum.models.scenario import Scenario
from maraum.services.store import SupabaseStore


class ScenarioService:
    """Read-only access to active scenarios."""

    def __init__(self, store: SupabaseStore) -> None:
        self.store = store

    async def list_active(self) -> list[Scenario]:
        """Active scenarios in display order."""
        return await self.store.list_active_scenarios()

    async def get(self, scenario_id: int) -> Scenario:
        scenario = await self.store.get_scenario(scenario_id)
        if scenario is None:
            raise NotFoundError("Scenario not found or not active", {"scenarioId": scenario_id})
        return scenario
