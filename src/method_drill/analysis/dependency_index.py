"""
Per-run aggregation of (project, namespace) reference counts.
"""

from collections import Counter
from typing import List, Tuple

from ..core.models import DependencyIndexItem


class DependencyIndexAggregator:
    """Counts how many methods of each (project, namespace) a traversal expanded."""

    def __init__(self):
        self._counts: Counter = Counter()

    def record(self, project: str, namespace: str) -> None:
        self._counts[(project, namespace)] += 1

    def count(self, project: str, namespace: str) -> int:
        return self._counts.get((project, namespace), 0)

    def snapshot(self) -> List[DependencyIndexItem]:
        """
        Current counts, ordered by count descending, then project, then namespace.
        """
        ordered: List[Tuple[Tuple[str, str], int]] = sorted(
            self._counts.items(),
            key=lambda item: (-item[1], item[0][0], item[0][1]),
        )
        return [
            DependencyIndexItem(project_name=project, namespace=namespace, times_referenced=count)
            for (project, namespace), count in ordered
        ]

    def clear(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)
