"""Step: Assemble all pipeline components into an ApiBlueprint."""

from __future__ import annotations

from apimap.commands.analyze.steps.base import MechanicalStep, StepValidationError
from apimap.commands.analyze.steps.types import BlueprintComponents
from apimap.formats.blueprint import ApiBlueprint, ApiEndpoint, BlueprintMetadata
from apimap.helpers.naming import stable_id


def coverage_percent(endpoints: list[ApiEndpoint], total_exchanges: int) -> float:
    """Share of analyzed exchanges folded into some endpoint, in percent."""
    if total_exchanges <= 0:
        return 0.0
    covered = sum(ep.metadata.hit_count for ep in endpoints)
    return min(100.0, covered / total_exchanges * 100)


def describe_blueprint(total_exchanges: int, action_count: int, flow_count: int) -> str:
    return (
        f"API blueprint generated from {total_exchanges} HTTP exchanges "
        f"and {action_count} user actions. {flow_count} flows detected."
    )


class AssembleBlueprintStep(MechanicalStep[BlueprintComponents, ApiBlueprint]):
    """Combine endpoints, auth patterns and flows into the blueprint aggregate."""

    name = "assemble"

    def _execute(self, input: BlueprintComponents) -> ApiBlueprint:
        return ApiBlueprint(
            id=stable_id("bp", input.project_id, input.name, input.created_at),
            project_id=input.project_id,
            name=input.name,
            description=input.description,
            base_url=input.base_url,
            endpoints=input.endpoints,
            auth_patterns=input.auth_patterns,
            flows=input.flows,
            metadata=BlueprintMetadata(
                total_exchanges_analyzed=input.total_exchanges,
                unique_endpoints_detected=len(input.endpoints),
                auth_patterns_detected=len(input.auth_patterns),
                flows_detected=len(input.flows),
                coverage_percent=coverage_percent(input.endpoints, input.total_exchanges),
            ),
            created_at=input.created_at,
            updated_at=input.created_at,
        )

    def _validate_output(self, output: ApiBlueprint) -> None:
        endpoint_ids = {ep.id for ep in output.endpoints}
        for flow in output.flows:
            for step in flow.steps:
                if step.endpoint_id not in endpoint_ids:
                    raise StepValidationError(
                        f"Flow {flow.id} references unknown endpoint {step.endpoint_id}",
                        {"flow_id": flow.id, "endpoint_id": step.endpoint_id},
                    )
