"""
Feature builders shared by the test modules.
"""

from typing import Any, Dict, Optional


def square(x: float = 95.0, y: float = 5.0, size: float = 0.01,
           z: Optional[float] = None) -> Dict[str, Any]:
    """Closed square Polygon geometry with its lower-left corner at (x, y)."""
    corners = [(x, y), (x + size, y), (x + size, y + size), (x, y + size), (x, y)]
    ring = [[cx, cy] if z is None else [cx, cy, z] for cx, cy in corners]
    return {'type': 'Polygon', 'coordinates': [ring]}


def feature(properties: Dict[str, Any], geometry: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        'type': 'Feature',
        'properties': properties,
        'geometry': square() if geometry is None else geometry
    }


def provinsi(code: str = '11', name: str = 'Aceh', **kwargs) -> Dict[str, Any]:
    return feature({'kd_propinsi': code, 'nm_propinsi': name}, **kwargs)


def kabupaten(prov: str = '11', code: str = '01', name: str = 'Simeulue', **kwargs) -> Dict[str, Any]:
    return feature({'kd_propinsi': prov, 'kd_dati2': code, 'nm_dati2': name}, **kwargs)


def kecamatan(prov: str = '11', kab: str = '01', code: str = '05',
              name: str = 'Simeulue Timur', **kwargs) -> Dict[str, Any]:
    return feature({
        'kd_propinsi': prov, 'kd_dati2': kab, 'kd_kecamatan': code, 'nm_kecamatan': name
    }, **kwargs)


def kelurahan(prov: str = '11', kab: str = '01', kec: str = '05', code: str = '001',
              name: str = 'Suka Jaya', **kwargs) -> Dict[str, Any]:
    return feature({
        'kd_propinsi': prov, 'kd_dati2': kab, 'kd_kecamatan': kec,
        'kd_kelurahan': code, 'nm_kelurahan': name
    }, **kwargs)


def feature_collection(*features) -> Dict[str, Any]:
    return {'type': 'FeatureCollection', 'features': list(features)}
