"""
Ingestion pipeline for the wilayah mapping application.

A batch of GeoJSON features declared at one hierarchy level is turned into
region upserts. Every feature goes through the same steps, sequentially:

1. derive the canonical identifier and display name
2. normalize the geometry: drop Z/M, simplify with topology preservation,
   coerce to MultiPolygon
3. upsert keyed by identifier

Bad features are skipped and counted, the batch continues. Only a store
connectivity failure aborts the batch.
"""

import logging
import time
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon, mapping, shape
from tqdm import tqdm

from .config import SIMPLIFY_TOLERANCE
from .exceptions import (
    DerivationError, MalformedGeometryError, StoreQueryError, StoreUnavailableError
)
from .hierarchy.code_deriver import CodeDeriver
from .hierarchy.hierarchy_config import STANDARD_HIERARCHY
from .models import IngestionResult

if TYPE_CHECKING:
    from .store.base import GeometryStore


POLYGONAL_TYPES = ('Polygon', 'MultiPolygon')


def normalize_geometry(geometry: Optional[Dict[str, Any]],
                       tolerance: float = SIMPLIFY_TOLERANCE,
                       identifier: Optional[str] = None) -> Dict[str, Any]:
    """
    Normalize a raw GeoJSON geometry for storage.

    Args:
        geometry: Raw GeoJSON geometry mapping
        tolerance: Simplification tolerance in coordinate units (degrees)
        identifier: Region identifier, used in error context

    Returns:
        GeoJSON MultiPolygon mapping

    Raises:
        MalformedGeometryError: If the geometry is missing, unparsable,
            not polygonal or empty after simplification
    """
    if not isinstance(geometry, dict) or not geometry.get('type'):
        raise MalformedGeometryError(
            f"Missing geometry for region {identifier}",
            identifier=identifier
        )

    geometry_type = geometry['type']
    if geometry_type not in POLYGONAL_TYPES:
        raise MalformedGeometryError(
            f"Geometry of region {identifier} is {geometry_type}, expected a polygon",
            identifier=identifier,
            geometry_type=geometry_type
        )

    try:
        geom = shapely.force_2d(shape(geometry))
        geom = geom.simplify(tolerance, preserve_topology=True)
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError) as e:
        raise MalformedGeometryError(
            f"Unparsable geometry for region {identifier}",
            identifier=identifier,
            geometry_type=geometry_type,
            original_error=e
        ) from e

    if geom.is_empty:
        raise MalformedGeometryError(
            f"Geometry of region {identifier} is empty after simplification",
            identifier=identifier,
            geometry_type=geometry_type
        )

    if isinstance(geom, Polygon):
        geom = MultiPolygon([geom])

    return mapping(geom)


class IngestionPipeline:
    """
    Writes feature batches into a GeometryStore.

    Features within one batch are processed one at a time; concurrent
    batches rely on the store's atomic upsert for same-identifier writes.
    """

    def __init__(self, store: 'GeometryStore', deriver: Optional[CodeDeriver] = None,
                 tolerance: float = SIMPLIFY_TOLERANCE, show_progress: bool = True,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the pipeline.

        Args:
            store: GeometryStore receiving the upserts
            deriver: CodeDeriver, created if not supplied
            tolerance: Simplification tolerance
            show_progress: Whether to display a tqdm progress bar
            logger: Optional logger instance
        """
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.deriver = deriver or CodeDeriver(self.logger)
        self.tolerance = tolerance
        self.show_progress = show_progress

    def ingest(self, features: Iterable[Dict[str, Any]], level: int) -> IngestionResult:
        """
        Ingest a batch of features declared at ``level``.

        Args:
            features: GeoJSON Feature mappings
            level: Declared hierarchy level (1-4)

        Returns:
            IngestionResult; ``processed`` is the number of regions written

        Raises:
            ValidationError: If ``level`` is not a known hierarchy level
            StoreUnavailableError: If the store becomes unreachable
        """
        hierarchy_level = STANDARD_HIERARCHY.get_level(level)
        features = list(features)
        result = IngestionResult(level=level, total=len(features))
        start_time = time.time()

        with tqdm(total=len(features), desc=f"Ingesting {hierarchy_level.name}",
                  unit="features", disable=not self.show_progress) as pbar:
            for index, feature in enumerate(features):
                try:
                    identifier = self._ingest_feature(index, feature, level)
                    result.processed += 1
                    result.identifiers.append(identifier)
                except (DerivationError, MalformedGeometryError) as e:
                    result.skipped += 1
                    result.record_failure(index, e)
                    self.logger.warning(f"Skipping feature {index}: {e}")
                except StoreQueryError as e:
                    result.failed_writes += 1
                    result.record_failure(index, e)
                    self.logger.error(f"Write failed for feature {index}: {e}")
                except StoreUnavailableError:
                    self.logger.error(
                        f"Store unavailable after {result.processed} of {result.total} "
                        f"{hierarchy_level.name} features; aborting batch"
                    )
                    raise
                finally:
                    pbar.update(1)

        result.duration = time.time() - start_time
        self.logger.info(
            f"Ingested {result.processed}/{result.total} {hierarchy_level.name} features "
            f"({result.skipped} skipped, {result.failed_writes} failed writes) "
            f"in {result.duration:.2f}s"
        )
        return result

    def _ingest_feature(self, index: int, feature: Any, level: int) -> str:
        if not isinstance(feature, dict):
            raise DerivationError(
                f"Feature #{index} is not a GeoJSON object",
                level=level,
                missing_fields=['properties'],
                feature_index=index
            )
        code = self.deriver.derive_or_raise(feature.get('properties'), level, feature_index=index)
        geometry = normalize_geometry(feature.get('geometry'), self.tolerance, code.identifier)
        self.store.upsert(code.identifier, code.display_name, level, geometry)
        return code.identifier
