from __future__ import annotations

from typing import Any, Sequence, Tuple, Union

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError
from shapely.geometry import box as shp_box
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as shp_transform

CRSLike = Union[int, str, CRS]
Region = Union[BaseGeometry, Sequence[float]]


def to_crs(value: CRSLike) -> CRS:
    try:
        return CRS.from_user_input(value)
    except CRSError as exc:
        raise ValueError(f"Unrecognised coordinate reference system: {value!r}") from exc


def shapely_transform(geom, transformer: Transformer):
    return shp_transform(lambda x, y, z=None: transformer.transform(x, y), geom)


def reproject(geom: BaseGeometry, source_crs: CRSLike, target_crs: CRSLike) -> BaseGeometry:
    """Reproject a shapely geometry; axis order is always x/lon, y/lat."""
    source = to_crs(source_crs)
    target = to_crs(target_crs)
    if source == target:
        return geom
    tr = Transformer.from_crs(source, target, always_xy=True)
    return shapely_transform(geom, tr)


def as_geometry(region: Region) -> BaseGeometry:
    """Accept a shapely geometry or a ``(minx, miny, maxx, maxy)`` sequence."""
    if isinstance(region, BaseGeometry):
        if region.is_empty:
            raise ValueError("Region geometry is empty")
        return region
    try:
        minx, miny, maxx, maxy = (float(v) for v in region)
    except (TypeError, ValueError) as exc:
        raise ValueError("Region must be a geometry or a (minx, miny, maxx, maxy) sequence") from exc
    return shp_box(minx, miny, maxx, maxy)


def bbox_4326(region: Region, crs: CRSLike = 4326) -> Tuple[float, float, float, float]:
    """Bounds of ``region`` after reprojection to EPSG:4326.

    Returned as ``(west, south, east, north)``.
    """
    geom = reproject(as_geometry(region), crs, 4326)
    minx, miny, maxx, maxy = geom.bounds
    return (minx, miny, maxx, maxy)


def point_coordinates(point: Any, crs: CRSLike, target_crs: CRSLike) -> Tuple[float, float]:
    """Reproject a point and return ``(lon, lat)`` in ``target_crs``."""
    geom = reproject(point, crs, target_crs)
    return (geom.x, geom.y)
