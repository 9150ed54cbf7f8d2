from typing import Any, Mapping, Optional, Union

from shapely.geometry import Point

from .geometry import CRSLike
from .models import (
    DiscoveryTarget,
    FeatureCollection,
    NHDPlusLayer,
    NLDIFeature,
    NLDITarget,
    PointLocation,
    PointTarget,
)
from .nldi import NLDIClient, check_nldi_feature
from .wfs import ID_LAYER_FIELDS, NHDPlusClient
from .utils.logging import get_logger

logger = get_logger(__name__)

CATCHMENT_ID_FIELD = ID_LAYER_FIELDS[NHDPlusLayer.CATCHMENT]

PointLike = Union[PointLocation, Point]


def _as_point_location(point: PointLike, crs: CRSLike) -> PointLocation:
    if isinstance(point, PointLocation):
        return point
    if isinstance(point, Point):
        if point.is_empty:
            raise ValueError("point must not be empty")
        return PointLocation(x=point.x, y=point.y, crs=crs)
    raise ValueError("point must be a PointLocation or a shapely Point")


def as_target(
    point: Optional[PointLike] = None,
    nldi_feature: Optional[Union[NLDIFeature, Mapping[str, Any]]] = None,
    crs: CRSLike = 4326,
) -> DiscoveryTarget:
    """Pick the lookup to run. A point wins when both inputs are given."""
    if point is not None:
        if nldi_feature is not None:
            logger.info("Both point and nldi_feature given; using point")
        return PointTarget(point=_as_point_location(point, crs))

    if nldi_feature is not None:
        return NLDITarget(feature=check_nldi_feature(nldi_feature))

    raise ValueError("Must provide point or nldi_feature input.")


def _to_int(value: Any, field: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Could not read {field} {value!r} as an integer")
        return None


def comid_from_catchments(catchments: FeatureCollection) -> Optional[int]:
    if catchments.is_empty:
        logger.warning("No catchment found at point.")
        return None

    if len(catchments) > 1:
        logger.warning(
            "point too close to edge of catchment found multiple.",
            extra={'matches': catchments.values(CATCHMENT_ID_FIELD)}
        )

    return _to_int(catchments.features[0].properties.get(CATCHMENT_ID_FIELD), CATCHMENT_ID_FIELD)


def resolve_target(target: DiscoveryTarget) -> Optional[int]:
    if isinstance(target, PointTarget):
        with NHDPlusClient() as client:
            catchments = client.get_catchment_at_point(target.point)
        return comid_from_catchments(catchments)

    record = NLDIClient().get_feature(target.feature)
    if not record:
        logger.warning(
            "NLDI returned no feature",
            extra={'source': target.feature.featureSource, 'feature_id': target.feature.featureID}
        )
        return None
    return _to_int(record.get("comid"), "comid")


def discover_nhdplus_id(
    point: Optional[PointLike] = None,
    nldi_feature: Optional[Union[NLDIFeature, Mapping[str, Any]]] = None,
    crs: CRSLike = 4326,
) -> Optional[int]:
    """Find the NHDPlus COMID for a point or an NLDI feature reference.

    ``point`` is a ``PointLocation`` or a shapely ``Point`` in ``crs``.
    ``nldi_feature`` holds ``featureSource``, ``featureID`` and optionally
    ``tier`` (default "prod"). Returns ``None`` when nothing matched.
    """
    return resolve_target(as_target(point, nldi_feature, crs=crs))
