"""
Integration tests for RegionService over the in-memory store.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from wilayah_mapping.config import WilayahConfig
from wilayah_mapping.exceptions import StoreUnavailableError, ValidationError
from wilayah_mapping.logging_config import RegionLogger
from wilayah_mapping.service import RegionService
from wilayah_mapping.store import InMemoryGeometryStore
from wilayah_mapping.utils.error_handler import RetryConfig

from tests.fixtures import feature_collection, kabupaten, kecamatan, kelurahan, provinsi


def ids(collection):
    return sorted(feature['properties']['id'] for feature in collection['features'])


class ServiceTestCase(unittest.TestCase):
    """Base class building a memory-backed service."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = WilayahConfig(
            backend='memory',
            show_progress=False,
            seed_marker_file=str(self.temp_dir / 'seed.json'),
            log_level='WARNING'
        )
        self.service = self.make_service()

    def make_service(self, **kwargs):
        return RegionService(
            self.config,
            logger=RegionLogger(level='WARNING'),
            retry_config=RetryConfig(max_attempts=2, base_delay=0),
            **kwargs
        )

    def tearDown(self):
        self.service.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestEndToEnd(ServiceTestCase):
    """End-to-end scenarios from ingestion to hierarchy queries."""

    def test_single_provinsi(self):
        written = self.service.ingest(1, [provinsi('11', 'Aceh')])

        self.assertEqual(written, 1)
        status = self.service.status('11')
        self.assertTrue(status.available)
        self.assertEqual(status.provinsi, 1)

        bundle = self.service.query_hierarchy('11')
        self.assertEqual(len(bundle.top['features']), 1)
        self.assertEqual(bundle.top['features'][0]['properties'], {'name': 'Aceh', 'id': '11'})
        self.assertIsNone(bundle.second)

    def test_kecamatan_query_with_context_and_children(self):
        self.service.ingest(2, [kabupaten('11', '01', 'Simeulue')])
        self.service.ingest(3, [kecamatan('11', '01', '0105', 'Simeulue Timur')])
        written = self.service.ingest(4, [
            kelurahan('11', '01', '0105', '001', 'Suka Jaya'),
            kelurahan('11', '01', '105', '002', 'Suka Maju'),
            kelurahan('11', '01', '05', '003', 'Sinabang'),
        ])
        self.assertEqual(written, 3)

        bundle = self.service.query_hierarchy('11.01.05')

        self.assertEqual(ids(bundle.third), ['11.01.05'])
        self.assertEqual(ids(bundle.second), ['11.01'])
        self.assertEqual(ids(bundle.fourth), ['11.01.05.2001', '11.01.05.2002', '11.01.05.2003'])
        self.assertIsNone(bundle.top)

        serialized = bundle.to_dict()
        self.assertEqual(set(serialized), {'top', 'second', 'third', 'fourth'})
        self.assertIsNone(serialized['top']['data'])
        self.assertEqual(serialized['fourth']['data']['type'], 'FeatureCollection')
        json.dumps(serialized)

    def test_ingest_counts_only_written_features(self):
        written = self.service.ingest(1, [provinsi('11'), {'type': 'Feature', 'properties': {}, 'geometry': None}])
        self.assertEqual(written, 1)

    def test_ingest_by_source_tag(self):
        result = self.service.ingest_source_tag('1101_kecamatan.geojson', [kecamatan()])
        self.assertEqual(result.level, 3)
        self.assertEqual(self.service.status('11.01').kecamatan, 1)

        self.assertEqual(self.service.ingest('11_Aceh.geojson', [provinsi()]), 1)
        self.assertEqual(self.service.status('11').provinsi, 1)

    def test_ingest_rejects_unknown_level(self):
        with self.assertRaises(ValidationError):
            self.service.ingest(9, [provinsi()])

    def test_ingest_file_detects_level_from_name(self):
        path = self.temp_dir / '1101_kelurahan.geojson'
        path.write_text(json.dumps(feature_collection(kelurahan(code='001'), kelurahan(code='002'))),
                        encoding='utf-8')

        result = self.service.ingest_file(path)

        self.assertEqual(result.level, 4)
        self.assertEqual(result.processed, 2)

    def test_ingest_file_with_explicit_level(self):
        path = self.temp_dir / 'anything.geojson'
        path.write_text(json.dumps(feature_collection(provinsi('11'))), encoding='utf-8')

        self.assertEqual(self.service.ingest_file(path, level=1).level, 1)
        self.assertEqual(self.service.ingest_file(path, source_tag='provinsi').level, 1)


class TestSearch(ServiceTestCase):
    """Test cases for name search."""

    def setUp(self):
        super().setUp()
        self.service.ingest(1, [provinsi('11', 'Aceh'), provinsi('12', 'Sumatera Utara')])
        self.service.ingest(2, [kabupaten('11', '06', 'Aceh Besar'), kabupaten('11', '02', 'Aceh Singkil')])

    def test_short_text_returns_nothing(self):
        store = MagicMock()
        service = self.make_service(store=store)
        self.assertEqual(service.search('ac'), [])
        self.assertEqual(service.search('  a  '), [])
        self.assertEqual(service.search(None), [])
        store.search_by_name.assert_not_called()
        service.composer.close()

    def test_results_ordered_by_level_then_name(self):
        results = self.service.search('aceh')
        self.assertEqual(results, [
            {'id': '11', 'name': 'Aceh', 'level': 1},
            {'id': '11.06', 'name': 'Aceh Besar', 'level': 2},
            {'id': '11.02', 'name': 'Aceh Singkil', 'level': 2},
        ])

    def test_no_match(self):
        self.assertEqual(self.service.search('Papua'), [])


class TestLifecycle(ServiceTestCase):
    """Test cases for startup, seeding and store failures."""

    def test_start_seeds_in_background(self):
        seed_file = self.temp_dir / '11_Aceh.geojson'
        seed_file.write_text(json.dumps(feature_collection(provinsi('11', 'Aceh'))), encoding='utf-8')
        self.config.seed_file = str(seed_file)
        service = self.make_service()

        service.start()
        service.wait_for_seed(timeout=10)

        self.assertTrue(service.status('').available)
        self.assertTrue(service.seeder.attempted)
        service.close()

    def test_start_without_seed_file(self):
        self.service.start(background=False)
        self.assertFalse(self.service.status('').available)

    def test_start_retries_then_raises_when_store_unreachable(self):
        store = MagicMock()
        store.check_connection.side_effect = StoreUnavailableError("refused", backend='postgres')
        service = self.make_service(store=store)

        with self.assertRaises(StoreUnavailableError):
            service.start()

        self.assertEqual(store.check_connection.call_count, 2)
        store.ensure_schema.assert_not_called()
        service.composer.close()

    def test_unavailable_store_surfaces_on_query(self):
        store = MagicMock()
        error = StoreUnavailableError("refused", backend='postgres')
        store.exact_by_level.side_effect = error
        store.prefix_by_level.side_effect = error
        store.count_by_prefix.side_effect = error
        service = self.make_service(store=store)

        with self.assertRaises(StoreUnavailableError):
            service.query_hierarchy('11')
        with self.assertRaises(StoreUnavailableError):
            service.status('11')
        service.composer.close()

    def test_close_releases_store(self):
        store = InMemoryGeometryStore()
        store.close = MagicMock()
        with self.make_service(store=store):
            pass
        store.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
