"""
Hierarchy configuration for the wilayah mapping application.

This module defines the data structures describing the four-tier Kemendagri
administrative hierarchy (provinsi, kabupaten, kecamatan, kelurahan) and the
identifier conventions shared by ingestion and queries.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..exceptions import ValidationError


SEPARATOR = "."


@dataclass(frozen=True)
class HierarchyLevel:
    """
    Represents a single level in the administrative hierarchy.

    Attributes:
        number: Depth in the hierarchy (1 = provinsi, 4 = kelurahan)
        name: Level identifier used in status reports
        bundle_key: Key of this level in a hierarchy query bundle
        code_key: Raw feature property carrying this level's code
        name_key: Raw feature property carrying this level's display name
        parent_level: Number of the parent level (None for top level)
    """
    number: int
    name: str
    bundle_key: str
    code_key: str
    name_key: str
    parent_level: Optional[int]

    def __post_init__(self):
        if not 1 <= self.number <= 4:
            raise ValueError(f"Hierarchy level must be between 1 and 4: {self.number}")


@dataclass
class HierarchyConfiguration:
    """
    Ordered collection of hierarchy levels with lookup helpers.

    Attributes:
        levels: All hierarchy levels from top to leaf
    """
    levels: List[HierarchyLevel]

    def get_level(self, number: int) -> HierarchyLevel:
        """
        Get hierarchy level by number.

        Args:
            number: Level number (1-4)

        Returns:
            HierarchyLevel object

        Raises:
            ValidationError: If no level has that number
        """
        for level in self.levels:
            if level.number == number:
                return level
        raise ValidationError(
            f"Unknown hierarchy level: {number}",
            field_name='level',
            invalid_value=number,
            validation_rules=[f"level in {[lvl.number for lvl in self.levels]}"]
        )

    def get_level_by_name(self, name: str) -> Optional[HierarchyLevel]:
        """Get hierarchy level by its name or bundle key, None if not found."""
        key = (name or '').strip().lower()
        for level in self.levels:
            if key in (level.name, level.bundle_key):
                return level
        return None

    @property
    def bundle_keys(self) -> List[str]:
        return [level.bundle_key for level in self.levels]

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate the hierarchy configuration.

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []

        numbers = [level.number for level in self.levels]
        if numbers != sorted(numbers) or len(set(numbers)) != len(numbers):
            issues.append(f"Levels must be unique and ordered top to leaf: {numbers}")

        for level in self.levels:
            if level.parent_level is None:
                if level.number != 1:
                    issues.append(f"Only level 1 may have no parent, found level {level.number}")
            elif level.parent_level != level.number - 1:
                issues.append(
                    f"Level {level.number} must have level {level.number - 1} as parent, "
                    f"found {level.parent_level}"
                )

        return len(issues) == 0, issues


def standard_hierarchy() -> HierarchyConfiguration:
    """
    Define the standard Indonesian administrative hierarchy.

    Returns:
        HierarchyConfiguration from provinsi (top) to kelurahan (leaf)
    """
    return HierarchyConfiguration(levels=[
        HierarchyLevel(
            number=1,
            name='provinsi',
            bundle_key='top',
            code_key='kd_propinsi',
            name_key='nm_propinsi',
            parent_level=None
        ),
        HierarchyLevel(
            number=2,
            name='kabupaten',
            bundle_key='second',
            code_key='kd_dati2',
            name_key='nm_dati2',
            parent_level=1
        ),
        HierarchyLevel(
            number=3,
            name='kecamatan',
            bundle_key='third',
            code_key='kd_kecamatan',
            name_key='nm_kecamatan',
            parent_level=2
        ),
        HierarchyLevel(
            number=4,
            name='kelurahan',
            bundle_key='fourth',
            code_key='kd_kelurahan',
            name_key='nm_kelurahan',
            parent_level=3
        ),
    ])


STANDARD_HIERARCHY = standard_hierarchy()


def split_identifier(identifier: str) -> List[str]:
    """
    Split an identifier into its segments.

    Args:
        identifier: Dotted region identifier, e.g. "11.01.05"

    Returns:
        List of non-empty segments

    Raises:
        ValidationError: If the identifier is blank or has empty segments
    """
    cleaned = (identifier or '').strip()
    if not cleaned:
        raise ValidationError(
            "Region identifier is required",
            field_name='identifier',
            invalid_value=identifier
        )

    segments = cleaned.split(SEPARATOR)
    if any(not segment for segment in segments):
        raise ValidationError(
            f"Region identifier has an empty segment: {identifier}",
            field_name='identifier',
            invalid_value=identifier,
            validation_rules=['no empty segments between separators']
        )
    return segments


def truncate_identifier(identifier: str, segments: int) -> str:
    """Keep the first ``segments`` segments of an identifier."""
    return SEPARATOR.join(split_identifier(identifier)[:segments])


def identifier_depth(identifier: str) -> int:
    """Number of segments in an identifier."""
    return len(split_identifier(identifier))


def is_descendant(candidate: str, prefix: str) -> bool:
    """
    Check the separator-aware prefix relation between two identifiers.

    ``"11.10"`` is not a descendant of ``"11.1"``; ``"11.1.02"`` is.
    """
    return candidate.startswith(prefix + SEPARATOR)
