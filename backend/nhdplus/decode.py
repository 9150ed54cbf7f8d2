from dataclasses import dataclass
from typing import Union

import orjson
from pydantic import ValidationError
from shapely.errors import ShapelyError
from shapely.geometry import shape

from .models import FeatureCollection
from .transport import WebResponse
from .utils.logging import get_logger

logger = get_logger(__name__)

WEB_REQUEST_FAILED = "Something went wrong with a web request."


@dataclass(frozen=True)
class DecodeSuccess:
    collection: FeatureCollection


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Union[DecodeSuccess, DecodeFailure]


def decode_feature_collection(raw: bytes) -> DecodeResult:
    """Parse a GeoJSON FeatureCollection payload.

    A collection with zero features is a success; anything that is not a
    FeatureCollection, or holds a geometry shapely cannot read, is a failure.
    """
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        return DecodeFailure(f"Response is not valid JSON: {exc}")

    if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
        return DecodeFailure("Response is not a GeoJSON FeatureCollection")

    if payload.get("features") is None:
        payload["features"] = []
    try:
        collection = FeatureCollection.model_validate(payload)
    except ValidationError as exc:
        return DecodeFailure(f"Unexpected feature structure: {exc.error_count()} validation error(s)")

    for index, feature in enumerate(collection.features):
        if feature.geometry is None:
            continue
        try:
            shape(feature.geometry)
        except (ShapelyError, KeyError, TypeError, ValueError) as exc:
            return DecodeFailure(f"Feature {index} has an unreadable geometry: {exc}")

    return DecodeSuccess(collection)


def make_web_features(response: WebResponse) -> FeatureCollection:
    """Turn a transport response into features, or an empty collection.

    Failures are logged rather than raised.
    """
    if not response.ok:
        logger.warning(
            f"{WEB_REQUEST_FAILED}\n {response.url} \n returned {response.status_code}",
            extra={'url': response.url, 'status_code': response.status_code}
        )
        return FeatureCollection()

    result = decode_feature_collection(response.content)
    if isinstance(result, DecodeFailure):
        logger.warning(
            f"{WEB_REQUEST_FAILED}\n {result.reason}",
            extra={'url': response.url}
        )
        return FeatureCollection()

    logger.debug(f"Decoded {len(result.collection)} features from {response.url}")
    return result.collection
