"""
Unit tests for GeoJSON source loading.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from wilayah_mapping.exceptions import DataLoadError, FileAccessError
from wilayah_mapping.source_loader import SourceLoader
from wilayah_mapping.utils.error_handler import RetryConfig

from tests.fixtures import feature_collection, kabupaten, provinsi


class TestSourceLoader(unittest.TestCase):
    """Test cases for SourceLoader."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.loader = SourceLoader(retry_config=RetryConfig(max_attempts=1, base_delay=0))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write(self, name, content):
        path = Path(self.temp_dir) / name
        path.write_text(content if isinstance(content, str) else json.dumps(content), encoding='utf-8')
        return path

    def test_load_feature_collection(self):
        path = self.write('11_Aceh.geojson', feature_collection(provinsi('11'), provinsi('12')))
        features = self.loader.load_features(path)
        self.assertEqual(len(features), 2)
        self.assertEqual(features[0]['properties']['kd_propinsi'], '11')

    def test_load_single_feature(self):
        path = self.write('single.geojson', provinsi('11'))
        self.assertEqual(len(self.loader.load_features(str(path))), 1)

    def test_missing_file(self):
        with self.assertRaises(FileAccessError):
            self.loader.load_features(Path(self.temp_dir) / 'missing.geojson')

    def test_directory_is_rejected(self):
        with self.assertRaises(FileAccessError):
            self.loader.load_features(self.temp_dir)

    def test_invalid_json(self):
        path = self.write('broken.geojson', '{"type": "FeatureCollection", ')
        with self.assertRaises(DataLoadError):
            self.loader.load_features(path)

    def test_unsupported_documents(self):
        for name, content in [
            ('point.geojson', {'type': 'Point', 'coordinates': [1, 2]}),
            ('list.geojson', [1, 2]),
            ('nofeatures.geojson', {'type': 'FeatureCollection', 'features': None}),
        ]:
            with self.subTest(name=name):
                with self.assertRaises(DataLoadError):
                    self.loader.load_features(self.write(name, content))

    def test_quality_summary(self):
        features = [
            kabupaten('11', '01'),
            kabupaten('11', '01', name='Duplicate'),
            {'type': 'Feature', 'properties': {'kd_propinsi': '11'}, 'geometry': None},
        ]

        summary = self.loader.quality_summary(features, 2)

        self.assertEqual(summary['total_records'], 3)
        self.assertEqual(summary['missing_columns'], [])
        self.assertEqual(summary['blank_counts'], {'kd_propinsi': 0, 'kd_dati2': 1})
        self.assertEqual(summary['duplicate_identifiers'], ['11.01'])

    def test_quality_summary_reports_missing_columns(self):
        summary = self.loader.quality_summary([provinsi('11')], 3)
        self.assertEqual(summary['missing_columns'], ['kd_dati2', 'kd_kecamatan'])
        self.assertEqual(summary['duplicate_identifiers'], [])

    def test_quality_summary_tolerates_non_object_entries(self):
        features = [provinsi('11'), None, "junk", {'type': 'Feature', 'properties': [1, 2], 'geometry': None}]

        summary = self.loader.quality_summary(features, 1)

        self.assertEqual(summary['total_records'], 4)
        self.assertEqual(summary['invalid_features'], 2)
        self.assertEqual(summary['blank_counts'], {'kd_propinsi': 3})
        self.assertEqual(summary['duplicate_identifiers'], [])

    def test_load_with_level_logs_quality_warnings(self):
        path = self.write('dupes.geojson', feature_collection(provinsi('11'), provinsi('11')))
        with self.assertLogs('wilayah_mapping.source_loader', level='WARNING') as logs:
            self.loader.load_features(path, level=1)
        self.assertTrue(any('more than once' in line for line in logs.output))


if __name__ == '__main__':
    unittest.main()
