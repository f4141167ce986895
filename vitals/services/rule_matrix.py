"""
Rule matrix lookup: (problem, risk level) -> base ranges and organ levels.

Pure and referentially transparent. Incomplete or unknown selections never
raise; they resolve to conservative placeholders and log a warning.
"""

import structlog

from vitals.domain.models import (
    ORGANS,
    PARAMETER_UNITS,
    MatrixResolution,
    OrganLevel,
    ParameterRange,
    RiskLevel,
)
from vitals.domain.rules import PROBLEM_MATRIX

logger = structlog.get_logger(__name__)

# Selection incomplete: every bound unset, every organ at the conservative minimum
UNSET_RESOLUTION = MatrixResolution(
    ranges={param: ParameterRange.unset(unit) for param, unit in PARAMETER_UNITS.items()},
    organ_levels={organ: OrganLevel.LOW for organ in ORGANS},
)


class RuleMatrix:
    """Static clinical rule table."""

    def __init__(self, table: dict[str, dict[RiskLevel, MatrixResolution]] | None = None) -> None:
        self.table = PROBLEM_MATRIX if table is None else table
        self.logger = logger.bind(component="rule_matrix")

    def known_problems(self) -> tuple[str, ...]:
        return tuple(self.table)

    def resolve(self, problem_id: str | None, risk_level: RiskLevel | str | None) -> MatrixResolution:
        """
        Look up the base cell for a problem at a risk level.

        The returned object is shared between callers and must not be modified.
        """
        if problem_id is None:
            return UNSET_RESOLUTION

        by_risk = self.table.get(problem_id)
        if by_risk is None:
            self.logger.warning("unknown_problem", problem_id=problem_id)
            return UNSET_RESOLUTION

        level = RiskLevel.parse(risk_level)
        if level is None or level not in by_risk:
            if risk_level is not None:
                self.logger.warning(
                    "unknown_risk_level", problem_id=problem_id, risk_level=str(risk_level)
                )
            return UNSET_RESOLUTION

        return by_risk[level]
