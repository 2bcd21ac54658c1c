"""
Hierarchy module for the wilayah mapping application.

This module provides the level definitions, code derivation, source level
detection and hierarchical query composition for the four-tier
administrative hierarchy.
"""

from wilayah_mapping.hierarchy.hierarchy_config import (
    SEPARATOR,
    HierarchyLevel,
    HierarchyConfiguration,
    STANDARD_HIERARCHY,
    standard_hierarchy
)
from wilayah_mapping.hierarchy.code_deriver import CodeDeriver, derive
from wilayah_mapping.hierarchy.level_detector import LevelDetector
from wilayah_mapping.hierarchy.query_composer import (
    FetchPlan,
    HierarchyBundle,
    HierarchyQueryComposer,
    plan_for
)

__all__ = [
    'SEPARATOR',
    'HierarchyLevel',
    'HierarchyConfiguration',
    'STANDARD_HIERARCHY',
    'standard_hierarchy',
    'CodeDeriver',
    'derive',
    'LevelDetector',
    'FetchPlan',
    'HierarchyBundle',
    'HierarchyQueryComposer',
    'plan_for'
]
