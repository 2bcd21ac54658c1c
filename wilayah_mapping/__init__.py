"""
Wilayah Mapping - administrative boundary ingestion and hierarchy queries.

This package derives canonical Kemendagri region codes from raw boundary
features (provinsi, kabupaten, kecamatan, kelurahan), stores simplified
polygons keyed by those codes and composes hierarchical map queries.
"""

__version__ = "1.0.0"
__author__ = "Data Analytics Team"
