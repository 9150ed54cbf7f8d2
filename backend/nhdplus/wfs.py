from typing import Any, Iterable, Optional, Union

from .decode import make_web_features
from .filters import bbox_filter, get_feature_document, id_filter, point_query_params
from .geometry import CRSLike, Region, bbox_4326, point_coordinates
from .models import FeatureCollection, NHDPlusLayer, PointLocation
from .settings import NHDPLUS_TIMEOUT, NHDPLUS_WFS_URL, POINT_QUERY_EPSILON
from .transport import WebClient
from .utils.logging import get_logger

logger = get_logger(__name__)

# Identifier attribute for each layer that can be queried by id
ID_LAYER_FIELDS = {
    NHDPlusLayer.CATCHMENT: "featureid",
    NHDPlusLayer.FLOWLINE: "comid",
}

BOX_LAYERS = (
    NHDPlusLayer.AREA,
    NHDPlusLayer.WATERBODY,
    NHDPlusLayer.CATCHMENT,
    NHDPlusLayer.FLOWLINE,
)

POINT_QUERY_SRS = "EPSG:4269"

LayerLike = Union[str, NHDPlusLayer]


def _check_layer(layer: LayerLike, valid_layers: Iterable[NHDPlusLayer]) -> NHDPlusLayer:
    valid = list(valid_layers)
    value = layer.value if isinstance(layer, NHDPlusLayer) else str(layer)
    for candidate in valid:
        if candidate.value == value:
            return candidate
    raise ValueError(f"Layer must be one of {', '.join(v.value for v in valid)}")


def check_id_layer(layer: LayerLike) -> NHDPlusLayer:
    return _check_layer(layer, ID_LAYER_FIELDS)


def check_box_layer(layer: LayerLike) -> NHDPlusLayer:
    return _check_layer(layer, BOX_LAYERS)


class NHDPlusClient:
    """Queries against the NHDPlus geoserver WFS endpoint.

    Each call makes a single request; failed requests and unreadable
    responses come back as an empty ``FeatureCollection``.
    """

    def __init__(self, base_url: str = NHDPLUS_WFS_URL, timeout: int = NHDPLUS_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout
        self.web: Optional[WebClient] = None

    def __enter__(self):
        self.web = WebClient(timeout=self.timeout).__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.web is not None:
            self.web.__exit__(exc_type, exc_val, exc_tb)
            self.web = None

    def get_by_ids(self, ids: Iterable[Any], layer: LayerLike) -> FeatureCollection:
        """Fetch features of ``layer`` whose identifier is any of ``ids``."""
        checked = check_id_layer(layer)
        id_values = list(ids)
        body = get_feature_document(checked.value, id_filter(ID_LAYER_FIELDS[checked], id_values))

        logger.info(
            "Querying NHDPlus by id",
            extra={'layer': checked.value, 'id_count': len(id_values)}
        )
        response = self.web.post(self.base_url, body)
        return make_web_features(response)

    def get_by_box(self, box: Region, layer: LayerLike, crs: CRSLike = 4326) -> FeatureCollection:
        """Fetch features of ``layer`` intersecting the bounds of ``box``."""
        checked = check_box_layer(layer)
        bounds = bbox_4326(box, crs)
        body = get_feature_document(checked.value, bbox_filter(bounds))

        logger.info(
            "Querying NHDPlus by bounding box",
            extra={'layer': checked.value, 'bbox': bounds}
        )
        response = self.web.post(self.base_url, body)
        return make_web_features(response)

    def get_catchment_at_point(
        self,
        point: PointLocation,
        epsilon: float = POINT_QUERY_EPSILON
    ) -> FeatureCollection:
        """Catchments intersecting a tiny box at ``point`` (WFS 1.0.0 GET)."""
        lon, lat = point_coordinates(point.to_shapely(), point.crs, POINT_QUERY_SRS)
        params = point_query_params(lon, lat, epsilon, srs=POINT_QUERY_SRS)

        logger.info("Querying NHDPlus catchment at point", extra={'lon': lon, 'lat': lat})
        response = self.web.get(self.base_url, params=params)
        return make_web_features(response)


def get_nhdplus_byid(ids: Iterable[Any], layer: LayerLike) -> FeatureCollection:
    id_values = list(ids)
    checked = check_id_layer(layer)
    with NHDPlusClient() as client:
        return client.get_by_ids(id_values, checked)


def get_nhdplus_bybox(box: Region, layer: LayerLike, crs: CRSLike = 4326) -> FeatureCollection:
    checked = check_box_layer(layer)
    with NHDPlusClient() as client:
        return client.get_by_box(box, checked, crs=crs)
