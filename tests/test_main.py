"""
Tests for the command-line entry point using the in-memory backend.
"""

import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

import main
from tests.fixtures import feature_collection, provinsi


class TestMain(unittest.TestCase):
    """Test cases for main()."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        patcher = patch.dict(os.environ, {'WILAYAH_SEED_MARKER': str(self.temp_dir / 'seed.json')}, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)
        dotenv = patch('wilayah_mapping.config.load_dotenv')
        dotenv.start()
        self.addCleanup(dotenv.stop)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_main(self, *argv):
        output = io.StringIO()
        with redirect_stdout(output):
            code = main.main(['--backend', 'memory', '--log-level', 'ERROR', '--no-progress', *argv])
        return code, output.getvalue()

    def test_ingest_file(self):
        path = self.temp_dir / '11_Aceh.geojson'
        path.write_text(json.dumps(feature_collection(provinsi('11'), provinsi('12'))), encoding='utf-8')

        code, output = self.run_main('ingest', str(path), '--level', '1')

        self.assertEqual(code, 0)
        self.assertIn('Regions written: 2', output)

    def test_ingest_missing_file_fails(self):
        code, _ = self.run_main('ingest', str(self.temp_dir / 'missing.geojson'), '--level', '1')
        self.assertEqual(code, 1)

    def test_status_of_empty_store(self):
        code, output = self.run_main('status', '11')
        self.assertEqual(code, 0)
        self.assertFalse(json.loads(output)['available'])

    def test_query_writes_bundle(self):
        target = self.temp_dir / 'out' / 'bundle.json'

        code, _ = self.run_main('query', '11.01', '--output', str(target))

        self.assertEqual(code, 0)
        bundle = json.loads(target.read_text(encoding='utf-8'))
        self.assertEqual(set(bundle), {'top', 'second', 'third', 'fourth'})

    def test_short_search(self):
        code, output = self.run_main('search', 'ac')
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output), [])

    def test_seed_without_seed_file(self):
        code, _ = self.run_main('seed')
        self.assertEqual(code, 1)

    def test_invalid_configuration(self):
        with patch.dict(os.environ, {'DB_POOL_MAX_SIZE': 'many'}):
            code, _ = self.run_main('status')
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
