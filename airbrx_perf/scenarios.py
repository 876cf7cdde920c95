"""
Query scenarios and weighted selection for the gateway load harness.

The scenario table models the NWEA dashboard traffic the gateway serves:
district summaries, class and student growth views, educator portfolios.
Each scenario carries a relative weight, and
:class:`WeightedScenarioSelector` picks one per iteration with probability
proportional to that weight.

Key Concepts Demonstrated:
- Immutable scenario records defined once at import time
- Weighted selection by walking a fixed order (stable, reproducible)
- Injectable random source so tests can assert exact outcomes
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Scenario:
    """A named, weighted query template sent to the gateway."""

    name: str
    query_text: str
    weight: int


class WeightedScenarioSelector:
    """
    Pick scenarios with probability proportional to their weight.

    A uniform draw in ``[0, total_weight)`` is walked down the scenario
    list in its declared order, subtracting each weight until the
    remainder drops to zero or below.  Draws that land at or past the
    cumulative total (floating-point rounding, or a stubbed random
    source) fall back to the first scenario with a positive weight.

    Args:
        scenarios: Ordered scenario collection, fixed for the run.
        rng: Random source exposing ``random()``.  Defaults to a fresh
            :class:`random.Random`.

    Raises:
        ValueError: If the collection is empty, any weight is negative,
            or the weights sum to zero.
    """

    def __init__(self, scenarios: Sequence[Scenario], rng: random.Random | None = None) -> None:
        if not scenarios:
            raise ValueError("At least one scenario is required")
        for scenario in scenarios:
            if scenario.weight < 0:
                raise ValueError(f"Scenario {scenario.name!r} has a negative weight")

        self._scenarios = tuple(scenarios)
        self._total_weight = sum(scenario.weight for scenario in self._scenarios)
        if self._total_weight <= 0:
            raise ValueError("Scenario weights must sum to > 0")
        self._fallback = next(scenario for scenario in self._scenarios if scenario.weight > 0)
        self._rng = rng or random.Random()

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        return self._scenarios

    @property
    def total_weight(self) -> int:
        return self._total_weight

    def select(self) -> Scenario:
        """Return one scenario for the current iteration."""
        draw = self._rng.random() * self._total_weight
        if draw >= self._total_weight:
            return self._fallback

        remaining = draw
        for scenario in self._scenarios:
            if scenario.weight == 0:
                continue
            remaining -= scenario.weight
            if remaining <= 0:
                return scenario

        # Float errors fallback
        return self._fallback


# ---- NWEA dashboard use cases (total weight 100) ----------------------

TEST_QUERIES: tuple[Scenario, ...] = (
    Scenario(
        name="UC1_District_Term_Summary",
        query_text="""SELECT
            s.SCHOOL_NAME,
            tr.SUBJECT,
            tr.TERM,
            COUNT(DISTINCT tr.STUDENT_ID) as student_count,
            AVG(tr.TEST_RIT_SCORE) as avg_rit_score
        FROM NWEA.ASSESSMENT_BSD.TEST_RESULTS tr
        JOIN NWEA.ASSESSMENT_BSD.SCHOOL s ON tr.SCHOOL_ID = s.SCHOOL_ID
        JOIN NWEA.ASSESSMENT_BSD.DISTRICT d ON s.DISTRICT_ID = d.DISTRICT_ID
        WHERE tr.TERM IN ('Fall 2025', 'Winter 2025', 'Spring 2025')
        GROUP BY s.SCHOOL_NAME, tr.SUBJECT, tr.TERM
        ORDER BY s.SCHOOL_NAME, tr.SUBJECT, tr.TERM""",
        weight=20,
    ),
    Scenario(
        name="UC2_Class_Growth_Fall_Winter",
        query_text="""SELECT * FROM NWEA.ASSESSMENT_BSD.VW_DASH_CLASS_GROWTH_2025
        WHERE TERM_FROM = 'Fall 2025' AND TERM_TO = 'Winter 2025'
        ORDER BY GROWTH_RIT DESC
        LIMIT 100""",
        weight=15,
    ),
    Scenario(
        name="UC3_Student_Term_Growth",
        query_text="""SELECT * FROM NWEA.ASSESSMENT_BSD.VW_DASH_STUDENT_TERM_GROWTH_2025
        WHERE STUDENT_ID <= 1000
        ORDER BY STUDENT_ID, SUBJECT, TERM""",
        weight=10,
    ),
    Scenario(
        name="UC4_Educator_Completeness",
        query_text="""SELECT
            e.EDUCATOR_NAME,
            c.CLASS_NAME,
            COUNT(CASE WHEN tr.TERM = 'Fall 2025' THEN 1 END) as fall_results_count,
            COUNT(CASE WHEN tr.TERM = 'Winter 2025' THEN 1 END) as winter_results_count,
            COUNT(CASE WHEN tr.TERM = 'Spring 2025' THEN 1 END) as spring_results_count
        FROM NWEA.ASSESSMENT_BSD.EDUCATOR e
        JOIN NWEA.ASSESSMENT_BSD.CLASS c ON e.EDUCATOR_ID = c.EDUCATOR_ID
        LEFT JOIN NWEA.ASSESSMENT_BSD.TEST_RESULTS tr ON c.CLASS_ID = tr.CLASS_ID
        GROUP BY e.EDUCATOR_NAME, c.CLASS_NAME
        ORDER BY e.EDUCATOR_NAME, c.CLASS_NAME""",
        weight=8,
    ),
    Scenario(
        name="UC5_At_Risk_Students",
        query_text="""SELECT
            s.STUDENT_ID,
            s.STUDENT_NAME,
            COUNT(DISTINCT tr.TERM) as terms_present,
            STRING_AGG(DISTINCT tr.TERM, ', ') as completed_terms
        FROM NWEA.ASSESSMENT_BSD.STUDENT s
        LEFT JOIN NWEA.ASSESSMENT_BSD.TEST_RESULTS tr ON s.STUDENT_ID = tr.STUDENT_ID
            AND tr.TERM IN ('Fall 2025', 'Winter 2025', 'Spring 2025')
        GROUP BY s.STUDENT_ID, s.STUDENT_NAME
        HAVING COUNT(DISTINCT tr.TERM) < 3
        ORDER BY terms_present, s.STUDENT_ID""",
        weight=12,
    ),
    Scenario(
        name="UC6_Cross_Subject_Correlation",
        query_text="""SELECT
            tr1.STUDENT_ID,
            tr1.TERM,
            tr1.TEST_RIT_SCORE as math_score,
            tr2.TEST_RIT_SCORE as reading_score,
            (tr1.TEST_RIT_SCORE - tr2.TEST_RIT_SCORE) as score_difference
        FROM NWEA.ASSESSMENT_BSD.TEST_RESULTS tr1
        JOIN NWEA.ASSESSMENT_BSD.TEST_RESULTS tr2
            ON tr1.STUDENT_ID = tr2.STUDENT_ID
            AND tr1.TERM = tr2.TERM
        WHERE tr1.SUBJECT = 'Mathematics'
            AND tr2.SUBJECT = 'Reading'
            AND tr1.TERM = 'Fall 2025'
        ORDER BY score_difference DESC
        LIMIT 500""",
        weight=10,
    ),
    Scenario(
        name="UC7_Class_Distribution",
        query_text="""SELECT
            c.CLASS_NAME,
            tr.TERM,
            COUNT(CASE WHEN tr.TEST_PERCENTILE < 25 THEN 1 END) as below_25,
            COUNT(CASE WHEN tr.TEST_PERCENTILE BETWEEN 25 AND 75 THEN 1 END) as mid_25_75,
            COUNT(CASE WHEN tr.TEST_PERCENTILE > 75 THEN 1 END) as above_75
        FROM NWEA.ASSESSMENT_BSD.TEST_RESULTS tr
        JOIN NWEA.ASSESSMENT_BSD.CLASS c ON tr.CLASS_ID = c.CLASS_ID
        WHERE tr.TERM IN ('Fall 2025', 'Winter 2025', 'Spring 2025')
        GROUP BY c.CLASS_NAME, tr.TERM
        ORDER BY c.CLASS_NAME, tr.TERM""",
        weight=10,
    ),
    Scenario(
        name="UC8_Educator_Portfolio",
        query_text="""SELECT * FROM NWEA.ASSESSMENT_BSD.VW_DASH_EDUCATOR_PORTFOLIO_2025
        WHERE EDUCATOR_ID <= 50
        ORDER BY EDUCATOR_ID, CLASS_NAME, TERM""",
        weight=15,
    ),
)

# The smoke harness sends one fixed, cheap query to the legacy endpoint.
SMOKE_QUERY = Scenario(
    name="Smoke_District_Count",
    query_text="SELECT COUNT(*) FROM DISTRICT;",
    weight=1,
)
