from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator
from shapely.geometry import Point, shape

VALID_TIERS = ("prod", "test")


class NHDPlusLayer(str, Enum):
    CATCHMENT = "catchmentsp"
    FLOWLINE = "nhdflowline_network"
    AREA = "nhdarea"
    WATERBODY = "nhdwaterbody"


class PointLocation(BaseModel):
    """A single location; ``x`` is longitude (or easting) in ``crs``."""

    x: float
    y: float
    crs: Union[int, str] = 4326

    def to_shapely(self) -> Point:
        return Point(self.x, self.y)


class NLDIFeature(BaseModel):
    featureSource: str = Field(..., min_length=1)
    featureID: str = Field(..., min_length=1)
    tier: str = "prod"

    @field_validator("featureSource", "featureID", mode="before")
    @classmethod
    def clean_reference(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tier", mode="before")
    @classmethod
    def default_tier(cls, value: Optional[str]) -> str:
        if value is None:
            return "prod"
        tier = str(value).strip().lower()
        if tier not in VALID_TIERS:
            raise ValueError(f"tier must be one of {', '.join(VALID_TIERS)}")
        return tier


class PointTarget(BaseModel):
    kind: Literal["point"] = "point"
    point: PointLocation


class NLDITarget(BaseModel):
    kind: Literal["nldi"] = "nldi"
    feature: NLDIFeature


DiscoveryTarget = Annotated[Union[PointTarget, NLDITarget], Field(discriminator="kind")]


class Feature(BaseModel):
    type: str = "Feature"
    id: Optional[Union[str, int]] = None
    geometry: Optional[Dict[str, Any]] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def null_properties(cls, value: Any) -> Any:
        return {} if value is None else value


class FeatureCollection(BaseModel):
    type: str = "FeatureCollection"
    features: List[Feature] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def is_empty(self) -> bool:
        return not self.features

    def values(self, name: str) -> List[Any]:
        """Return one attribute column."""
        return [feature.properties.get(name) for feature in self.features]

    def to_records(self) -> Iterator[Dict[str, Any]]:
        """Yield one row per feature: attributes plus a shapely ``geometry``."""
        for feature in self.features:
            row = dict(feature.properties)
            row["geometry"] = shape(feature.geometry) if feature.geometry else None
            yield row


class DiscoverRequest(BaseModel):
    target: DiscoveryTarget


class DiscoverResponse(BaseModel):
    comid: Optional[int] = None


class IdQueryRequest(BaseModel):
    ids: List[Union[int, str]]
    layer: str


class BoxQueryRequest(BaseModel):
    bbox: List[float] = Field(..., min_length=4, max_length=4)  # [minx, miny, maxx, maxy]
    crs: Union[int, str] = 4326
    layer: str

    @field_validator("bbox")
    @classmethod
    def validate_bbox(cls, value: List[float]) -> List[float]:
        minx, miny, maxx, maxy = value
        if minx > maxx or miny > maxy:
            raise ValueError("bbox must be ordered as [minx, miny, maxx, maxy]")
        return value


class LayersResponse(BaseModel):
    byid: List[str]
    bybox: List[str]


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: Optional[str] = None
