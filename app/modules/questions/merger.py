"""Monotonic merge of partial extraction results into visible progress."""

from __future__ import annotations

import math
from typing import Optional, Protocol

from app.modules.questions.models import (
    Category,
    CategoryProgress,
    QuestionSet,
    Quantities,
)


class ProgressObserver(Protocol):
    def on_partial_result(
        self, category: Category, records: list, progress: CategoryProgress
    ) -> None: ...


def progress_percent(count: int, requested: int) -> int:
    if requested <= 0:
        return 100
    # Half-up rounding, capped at 100
    return min(100, math.floor(count * 100 / requested + 0.5))


class IncrementalMerger:
    """Keeps the best-known records per category for one generation run.

    A candidate list replaces the current one only when it is longer, so the
    visible count for a category never goes down during a run.
    """

    def __init__(
        self, quantities: Quantities, observer: Optional[ProgressObserver] = None
    ) -> None:
        self.quantities = quantities
        self.observer = observer
        self._best: dict[Category, list] = {c: [] for c in Category}

    def best(self, category: Category) -> list:
        return list(self._best[category])

    def snapshot(self) -> QuestionSet:
        return QuestionSet.from_lists(self._best)

    def merge(self, candidate: QuestionSet) -> list[CategoryProgress]:
        """Adopt every category of ``candidate`` that grew; report the ones that did."""
        updates: list[CategoryProgress] = []
        for category in Category:
            records = candidate.get(category)
            if len(records) <= len(self._best[category]):
                continue
            self._best[category] = list(records)
            requested = self.quantities.for_category(category)
            progress = CategoryProgress(
                category=category,
                count=len(records),
                requested=requested,
                percent=progress_percent(len(records), requested),
            )
            updates.append(progress)
            if self.observer is not None:
                self.observer.on_partial_result(category, list(records), progress)
        return updates
