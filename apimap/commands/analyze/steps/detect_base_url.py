"""Step: Detect the API base URL from captured traffic."""

from __future__ import annotations

from collections import Counter

from apimap.commands.analyze.steps.base import MechanicalStep, StepValidationError
from apimap.commands.analyze.utils import parse
from apimap.formats.capture import Exchange


class DetectBaseUrlStep(MechanicalStep[list[Exchange], str]):
    """Pick the most frequent ``scheme://host`` among the exchanges.

    Ties go to the origin seen first.  Returns ``""`` when no exchange has a
    parseable URL.
    """

    name = "detect_base_url"

    def _execute(self, input: list[Exchange]) -> str:
        counts = Counter(
            origin for ex in input if (origin := parse(ex.request.url).origin)
        )
        if not counts:
            return ""
        return counts.most_common(1)[0][0]

    def _validate_output(self, output: str) -> None:
        if output and not output.startswith("http"):
            raise StepValidationError(
                f"Invalid base URL: {output}",
                {"base_url": output},
            )
