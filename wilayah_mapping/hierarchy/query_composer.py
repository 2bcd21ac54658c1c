"""
Hierarchical query composition for the wilayah mapping application.

Given a region identifier, the composer classifies its depth, plans which
levels to read (the region itself, its parent as context, its children) and
runs the reads concurrently. Each read fills its own bundle slot:

============  ==========  ================  ======================
depth         self        context (exact)   children (prefix)
============  ==========  ================  ======================
1 segment     level 1     -                 level 2
2 segments    level 2     -                 level 3, level 4
3 segments    level 3     level 2           level 4
4+ segments   level 4     level 3           -
============  ==========  ================  ======================

A failed or empty read leaves its slot unset. Only when every read fails
because the store is unreachable does the composition itself fail.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..exceptions import StoreError, StoreUnavailableError
from ..models import RegionFeature, to_feature_collection
from .hierarchy_config import (
    HierarchyConfiguration, STANDARD_HIERARCHY, identifier_depth, truncate_identifier
)

if TYPE_CHECKING:
    from ..store.base import GeometryStore


EXACT = 'exact'
PREFIX = 'prefix'


@dataclass(frozen=True)
class Fetch:
    """One store read in a fetch plan."""

    role: str
    level: int
    mode: str
    identifier: str


@dataclass(frozen=True)
class FetchPlan:
    """Reads required to answer a hierarchy query."""

    identifier: str
    depth: int
    fetches: Tuple[Fetch, ...]

    def _levels(self, role: str) -> List[int]:
        return [fetch.level for fetch in self.fetches if fetch.role == role]

    @property
    def self_level(self) -> int:
        return self._levels('self')[0]

    @property
    def context_level(self) -> Optional[int]:
        levels = self._levels('context')
        return levels[0] if levels else None

    @property
    def children_levels(self) -> List[int]:
        return self._levels('children')


def plan_for(identifier: str) -> FetchPlan:
    """
    Classify an identifier and build its fetch plan.

    Args:
        identifier: Dotted region identifier

    Returns:
        FetchPlan for the identifier's depth

    Raises:
        ValidationError: If the identifier is blank or malformed
    """
    identifier = identifier.strip()
    depth = identifier_depth(identifier)

    if depth == 1:
        fetches = (
            Fetch('self', 1, EXACT, identifier),
            Fetch('children', 2, PREFIX, identifier),
        )
    elif depth == 2:
        fetches = (
            Fetch('self', 2, EXACT, identifier),
            Fetch('children', 3, PREFIX, identifier),
            Fetch('children', 4, PREFIX, identifier),
        )
    elif depth == 3:
        fetches = (
            Fetch('context', 2, EXACT, truncate_identifier(identifier, 2)),
            Fetch('self', 3, EXACT, identifier),
            Fetch('children', 4, PREFIX, identifier),
        )
    else:
        fetches = (
            Fetch('context', 3, EXACT, truncate_identifier(identifier, 3)),
            Fetch('self', 4, EXACT, identifier),
        )

    return FetchPlan(identifier=identifier, depth=depth, fetches=fetches)


@dataclass
class HierarchyBundle:
    """
    Per-level FeatureCollections answering one hierarchy query.

    A slot is ``None`` when its level was not fetched, came back empty or
    failed; ``errors`` records the failed slots.
    """

    identifier: str
    top: Optional[Dict[str, Any]] = None
    second: Optional[Dict[str, Any]] = None
    third: Optional[Dict[str, Any]] = None
    fourth: Optional[Dict[str, Any]] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return getattr(self, key)

    def set(self, key: str, collection: Dict[str, Any]):
        if key not in STANDARD_HIERARCHY.bundle_keys:
            raise KeyError(key)
        setattr(self, key, collection)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Serialize as ``{level key: {"data": FeatureCollection or None}}``."""
        return {key: {'data': self.get(key)} for key in STANDARD_HIERARCHY.bundle_keys}


class HierarchyQueryComposer:
    """
    Composes hierarchy bundles from concurrent store reads.
    """

    def __init__(self, store: 'GeometryStore', max_workers: int = 4,
                 hierarchy: Optional[HierarchyConfiguration] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the composer.

        Args:
            store: GeometryStore to read from
            max_workers: Maximum number of concurrent reads
            hierarchy: Hierarchy configuration, defaults to the standard one
            logger: Optional logger instance
        """
        self.store = store
        self.hierarchy = hierarchy or STANDARD_HIERARCHY
        self.logger = logger or logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="wilayah-query")

    def compose(self, identifier: str) -> HierarchyBundle:
        """
        Answer a hierarchy query.

        Args:
            identifier: Dotted region identifier at any depth

        Returns:
            HierarchyBundle with one FeatureCollection per non-empty read

        Raises:
            ValidationError: If the identifier is blank or malformed
            StoreUnavailableError: If every read failed on connectivity
        """
        plan = plan_for(identifier)
        bundle = HierarchyBundle(identifier=plan.identifier)
        failures: List[StoreError] = []

        futures = {self._executor.submit(self._execute, fetch): fetch for fetch in plan.fetches}
        for future in as_completed(futures):
            fetch = futures[future]
            slot = self.hierarchy.get_level(fetch.level).bundle_key
            try:
                regions = future.result()
            except StoreError as e:
                failures.append(e)
                bundle.errors[slot] = str(e)
                self.logger.warning(
                    f"{fetch.role} fetch of level {fetch.level} for {plan.identifier} failed: {e}"
                )
                continue

            if regions:
                bundle.set(slot, to_feature_collection(regions))

        if failures and len(failures) == len(plan.fetches) and all(
            isinstance(e, StoreUnavailableError) for e in failures
        ):
            raise StoreUnavailableError(
                f"Store unavailable for hierarchy query {plan.identifier}",
                backend=failures[0].backend,
                operation='compose',
                original_error=failures[0]
            ) from failures[0]

        self.logger.debug(
            f"Composed {plan.identifier} (depth {plan.depth}): "
            f"{[key for key in self.hierarchy.bundle_keys if bundle.get(key)]}"
        )
        return bundle

    def _execute(self, fetch: Fetch) -> List[RegionFeature]:
        if fetch.mode == EXACT:
            return self.store.exact_by_level(fetch.level, fetch.identifier)
        return self.store.prefix_by_level(fetch.level, fetch.identifier)

    def close(self):
        self._executor.shutdown(wait=True)
