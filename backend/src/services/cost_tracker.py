"""Token usage and dollar cost accounting for language-model runs."""

import logging
from datetime import UTC, datetime
from typing import Callable

from models.enrichment import CostEntry, CostReport, CostTotals

logger = logging.getLogger(__name__)

# USD per 1K tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
}
DEFAULT_MODEL = "gpt-4o"

COST_REPORTS_PREFIX = "resorts/_processing/cost-reports"


def get_pricing(model: str) -> dict[str, float]:
    """Rates for ``model``, falling back to the default model's rates."""
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.debug(f"No pricing for model {model}, using {DEFAULT_MODEL} rates")
        return MODEL_PRICING[DEFAULT_MODEL]
    return pricing


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    pricing = get_pricing(model)
    return (prompt_tokens / 1000) * pricing["input"] + (
        completion_tokens / 1000
    ) * pricing["output"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CostTracker:
    """Accumulates per-resort usage for exactly one run."""

    def __init__(self, model: str = DEFAULT_MODEL, clock: Callable[[], datetime] = _utc_now):
        self.model = model
        self._clock = clock
        self.started_at = clock()
        self._entries: list[CostEntry] = []

    def add_resort(
        self,
        slug: str,
        prompt_tokens: int,
        completion_tokens: int,
        processing_time_ms: int,
    ) -> float:
        """Record one resort's usage and return its cost."""
        cost = calculate_cost(self.model, prompt_tokens, completion_tokens)
        self._entries.append(
            CostEntry(
                slug=slug,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                cost=cost,
                processing_time_ms=processing_time_ms,
            )
        )
        return cost

    @property
    def resort_count(self) -> int:
        return len(self._entries)

    @property
    def total_cost(self) -> float:
        return sum(entry.cost for entry in self._entries)

    @property
    def run_id(self) -> str:
        return self.started_at.isoformat()

    def get_report(self) -> CostReport:
        totals = CostTotals(
            resort_count=len(self._entries),
            total_prompt_tokens=sum(e.prompt_tokens for e in self._entries),
            total_completion_tokens=sum(e.completion_tokens for e in self._entries),
            total_cost=self.total_cost,
            total_processing_time_ms=sum(e.processing_time_ms for e in self._entries),
        )
        if totals.resort_count:
            totals.avg_cost_per_resort = totals.total_cost / totals.resort_count

        return CostReport(
            run_id=self.run_id,
            started_at=self.started_at.isoformat(),
            completed_at=self._clock().isoformat(),
            model=self.model,
            resorts=list(self._entries),
            totals=totals,
        )

    def report_key(self) -> str:
        """Object key the report is saved under."""
        return f"{COST_REPORTS_PREFIX}/{self.run_id.replace(':', '-')}.json"

    def format_summary(self) -> str:
        report = self.get_report()
        totals = report.totals
        lines = [
            "=== Cost Summary ===",
            f"Model:             {report.model}",
            f"Resorts:           {totals.resort_count}",
            f"Prompt tokens:     {totals.total_prompt_tokens:,}",
            f"Completion tokens: {totals.total_completion_tokens:,}",
            f"Total cost:        ${totals.total_cost:.4f}",
            f"Avg per resort:    ${totals.avg_cost_per_resort:.4f}",
            f"Processing time:   {totals.total_processing_time_ms / 1000:.1f}s",
        ]
        return "\n".join(lines)
