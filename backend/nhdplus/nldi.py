from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote

from pydantic import ValidationError

from .decode import make_web_features
from .models import NLDIFeature
from .settings import NHDPLUS_TIMEOUT, NLDI_TIERS
from .transport import WebClient
from .utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("featureSource", "featureID")


def check_nldi_feature(nldi_feature: Union[NLDIFeature, Mapping[str, Any]]) -> NLDIFeature:
    """Validate an NLDI feature reference, defaulting ``tier`` to "prod"."""
    if isinstance(nldi_feature, NLDIFeature):
        return nldi_feature

    if not isinstance(nldi_feature, Mapping):
        raise ValueError(
            "NLDI feature must be a mapping with names: " + ", ".join(REQUIRED_FIELDS)
        )

    missing = [
        name for name in REQUIRED_FIELDS
        if nldi_feature.get(name) is None or str(nldi_feature.get(name)).strip() == ""
    ]
    if missing:
        raise ValueError(
            "Missing some required input for NLDI. Expected names: "
            f"{', '.join(REQUIRED_FIELDS)} (missing {', '.join(missing)})"
        )

    try:
        return NLDIFeature.model_validate(dict(nldi_feature))
    except ValidationError as exc:
        raise ValueError(f"Invalid NLDI feature: {exc.errors()[0]['msg']}") from exc


def nldi_base_url(tier: str) -> str:
    try:
        return NLDI_TIERS[tier].rstrip("/")
    except KeyError:
        raise ValueError(f"tier must be one of {', '.join(NLDI_TIERS)}") from None


class NLDIClient:
    """Look up linked-data features on the Network-Linked Data Index."""

    def __init__(self, timeout: int = NHDPLUS_TIMEOUT):
        self.timeout = timeout

    def feature_url(self, feature: NLDIFeature) -> str:
        return "/".join((
            nldi_base_url(feature.tier),
            "linked-data",
            quote(feature.featureSource, safe=""),
            quote(feature.featureID, safe=""),
        ))

    def get_feature(self, nldi_feature: Union[NLDIFeature, Mapping[str, Any]]) -> Dict[str, Any]:
        """Return the properties of the indexed feature, or ``{}``."""
        feature = check_nldi_feature(nldi_feature)
        url = self.feature_url(feature)

        logger.info(
            "Resolving NLDI feature",
            extra={'source': feature.featureSource, 'feature_id': feature.featureID, 'tier': feature.tier}
        )
        with WebClient(timeout=self.timeout) as web:
            collection = make_web_features(web.get(url, params={"f": "json"}))

        if collection.is_empty:
            return {}
        return dict(collection.features[0].properties)


def get_nldi_feature(
    nldi_feature: Union[NLDIFeature, Mapping[str, Any]],
    tier: Optional[str] = None
) -> Dict[str, Any]:
    feature = check_nldi_feature(nldi_feature)
    if tier is not None:
        feature = feature.model_copy(update={"tier": tier})
    return NLDIClient().get_feature(feature)
