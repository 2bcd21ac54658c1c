"""
Unit tests for geometry normalization and the ingestion pipeline.
"""

import threading
import unittest
from unittest.mock import patch

from wilayah_mapping.exceptions import (
    MalformedGeometryError, StoreQueryError, StoreUnavailableError, ValidationError
)
from wilayah_mapping.ingestion import IngestionPipeline, normalize_geometry
from wilayah_mapping.store import InMemoryGeometryStore

from tests.fixtures import feature, kabupaten, kelurahan, provinsi, square


def min_x(geometry):
    return min(position[0] for position in geometry['coordinates'][0][0])


class TestNormalizeGeometry(unittest.TestCase):
    """Test cases for normalize_geometry."""

    def test_polygon_becomes_multipolygon(self):
        result = normalize_geometry(square())
        self.assertEqual(result['type'], 'MultiPolygon')
        self.assertEqual(len(result['coordinates']), 1)

    def test_multipolygon_is_kept(self):
        geometry = {
            'type': 'MultiPolygon',
            'coordinates': [square(95.0)['coordinates'], square(96.0)['coordinates']]
        }
        result = normalize_geometry(geometry)
        self.assertEqual(result['type'], 'MultiPolygon')
        self.assertEqual(len(result['coordinates']), 2)

    def test_third_dimension_is_dropped(self):
        result = normalize_geometry(square(z=12.5))
        for position in result['coordinates'][0][0]:
            self.assertEqual(len(position), 2)

    def test_vertices_within_tolerance_are_simplified(self):
        geometry = {
            'type': 'Polygon',
            'coordinates': [[
                [95.0, 5.0], [95.005, 5.00001], [95.01, 5.0],
                [95.01, 5.01], [95.0, 5.01], [95.0, 5.0]
            ]]
        }
        result = normalize_geometry(geometry)
        self.assertEqual(len(result['coordinates'][0][0]), 5)

    def test_rejected_geometries(self):
        for geometry in (None, {}, {'type': 'Point', 'coordinates': [95.0, 5.0]},
                         {'type': 'LineString', 'coordinates': [[95.0, 5.0], [96.0, 5.0]]},
                         {'type': 'Polygon', 'coordinates': []}):
            with self.subTest(geometry=geometry):
                with self.assertRaises(MalformedGeometryError):
                    normalize_geometry(geometry, identifier='11')


class FailingStore(InMemoryGeometryStore):
    """Store that rejects writes for selected identifiers."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def upsert(self, identifier, name, level, geometry):
        error = self.failures.get(identifier)
        if error is not None:
            raise error
        super().upsert(identifier, name, level, geometry)


class TestIngestionPipeline(unittest.TestCase):
    """Test cases for IngestionPipeline."""

    def setUp(self):
        self.store = InMemoryGeometryStore()
        self.pipeline = IngestionPipeline(self.store, show_progress=False)

    def test_ingest_writes_every_valid_feature(self):
        result = self.pipeline.ingest([provinsi('11', 'Aceh'), provinsi('12', 'Sumatera Utara')], 1)

        self.assertEqual(result.processed, 2)
        self.assertEqual(result.total, 2)
        self.assertEqual(result.identifiers, ['11', '12'])
        self.assertEqual(len(self.store), 2)
        self.assertEqual(self.store.get_row('11')['level'], 1)
        self.assertEqual(result.get_success_rate(), 100.0)

    def test_bad_features_are_skipped_and_counted(self):
        features = [
            kelurahan(code='001'),
            kelurahan(code=''),
            kelurahan(code='002', geometry={'type': 'Point', 'coordinates': [95.0, 5.0]}),
            {'type': 'Feature', 'properties': None, 'geometry': square()},
            kelurahan(code='003'),
        ]
        result = self.pipeline.ingest(features, 4)

        self.assertEqual(result.processed, 2)
        self.assertEqual(result.skipped, 3)
        self.assertEqual(result.failed_writes, 0)
        self.assertEqual([f['feature_index'] for f in result.failures], [1, 2, 3])
        self.assertEqual(result.failures[0]['error_type'], 'DerivationError')
        self.assertEqual(result.failures[1]['error_type'], 'MalformedGeometryError')
        self.assertEqual(sorted(result.identifiers), ['11.01.05.2001', '11.01.05.2003'])

    def test_non_object_entries_are_skipped_and_counted(self):
        features = [
            provinsi('11', 'Aceh'),
            "junk",
            None,
            feature(['kd_propinsi', '13']),
            provinsi('12', 'Sumatera Utara'),
        ]
        result = self.pipeline.ingest(features, 1)

        self.assertEqual(result.processed, 2)
        self.assertEqual(result.skipped, 3)
        self.assertEqual(sorted(result.identifiers), ['11', '12'])
        self.assertEqual([f['feature_index'] for f in result.failures], [1, 2, 3])
        self.assertTrue(all(f['error_type'] == 'DerivationError' for f in result.failures))
        self.assertEqual(len(self.store), 2)

    def test_write_errors_are_counted_and_batch_continues(self):
        store = FailingStore({'11.02': StoreQueryError("value too long", backend='memory')})
        pipeline = IngestionPipeline(store, show_progress=False)

        result = pipeline.ingest([kabupaten(code='01'), kabupaten(code='02'), kabupaten(code='03')], 2)

        self.assertEqual(result.processed, 2)
        self.assertEqual(result.failed_writes, 1)
        self.assertEqual(result.failures[0]['error_type'], 'StoreQueryError')
        self.assertIsNone(store.get_row('11.02'))

    def test_store_unavailable_aborts_batch(self):
        store = FailingStore({'11.02': StoreUnavailableError("connection refused", backend='memory')})
        pipeline = IngestionPipeline(store, show_progress=False)

        with self.assertRaises(StoreUnavailableError):
            pipeline.ingest([kabupaten(code='01'), kabupaten(code='02'), kabupaten(code='03')], 2)

        self.assertIsNotNone(store.get_row('11.01'))
        self.assertIsNone(store.get_row('11.03'))

    def test_unknown_level(self):
        with self.assertRaises(ValidationError):
            self.pipeline.ingest([provinsi()], 0)

    def test_empty_batch(self):
        result = self.pipeline.ingest([], 1)
        self.assertEqual(result.processed, 0)
        self.assertEqual(result.get_success_rate(), 0.0)

    def test_ingest_is_idempotent(self):
        batch = [provinsi('11', 'Aceh'), provinsi('12', 'Sumatera Utara')]
        self.pipeline.ingest(batch, 1)
        first = self.store.get_row('11')

        result = self.pipeline.ingest(batch, 1)
        second = self.store.get_row('11')

        self.assertEqual(result.processed, 2)
        self.assertEqual(len(self.store), 2)
        self.assertEqual(first['geometry'], second['geometry'])
        self.assertEqual(first['display_name'], second['display_name'])
        self.assertEqual(first['created_at'], second['created_at'])
        self.assertGreaterEqual(second['updated_at'], first['updated_at'])

    def test_reingest_overwrites_name_and_geometry(self):
        self.pipeline.ingest([provinsi('11', 'Aceh', geometry=square(95.0))], 1)
        created_at = self.store.get_row('11')['created_at']

        self.pipeline.ingest([provinsi('11', 'Nanggroe Aceh', geometry=square(96.0))], 1)
        row = self.store.get_row('11')

        self.assertEqual(row['display_name'], 'Nanggroe Aceh')
        self.assertEqual(row['created_at'], created_at)
        region = self.store.exact_by_level(1, '11')[0]
        self.assertEqual(min_x(region.geometry), 96.0)

    def test_concurrent_upserts_leave_one_row(self):
        geometries = [square(95.0), square(97.0)]
        pipelines = [IngestionPipeline(self.store, show_progress=False) for _ in geometries]
        barrier = threading.Barrier(len(pipelines))

        def run(pipeline, geometry):
            barrier.wait()
            for _ in range(20):
                pipeline.ingest([provinsi('11', 'Aceh', geometry=geometry)], 1)

        threads = [threading.Thread(target=run, args=pair) for pair in zip(pipelines, geometries)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(self.store), 1)
        geometry = self.store.exact_by_level(1, '11')[0].geometry
        self.assertIn(min_x(geometry), (95.0, 97.0))

    def test_progress_bar_follows_setting(self):
        with patch('wilayah_mapping.ingestion.tqdm') as mock_tqdm:
            IngestionPipeline(self.store, show_progress=False).ingest([provinsi()], 1)
            self.assertTrue(mock_tqdm.call_args.kwargs['disable'])


if __name__ == '__main__':
    unittest.main()
