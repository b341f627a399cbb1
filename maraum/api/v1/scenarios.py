"""Scenario API endpoints."""

from fastapi import APIRouter, Depends, Path

from maraum.api.deps import get_scenario_service
from maraum.models.scenario import Scenario
from maraum.services.scenario_service import ScenarioService

router = APIRouter(prefix="/scenarios", tags=["scenarios"])


@router.get("", response_model=list[Scenario])
async def list_scenarios(
    service: ScenarioService = Depends(get_scenario_service),
) -> list[Scenario]:
    """List active scenarios."""
    return await service.list_active()


@router.get("/{scenario_id}", response_model=Scenario)
async def get_scenario(
    scenario_id: int = Path(ge=1),
    service: ScenarioService = Depends(get_scenario_service),
) -> Scenario:
    """Get an active scenario by ID."""
    return await service.get(scenario_id)
