"""WFS GetFeature documents and filters for the NHDPlus geoserver.

Elements are built with ElementTree so identifier literals are escaped by
the serializer. Prefixed tag names are written literally and their
namespaces declared on the element that introduces them, which keeps the
documents byte-for-byte close to what the geoserver examples use.
"""
import re
import xml.etree.ElementTree as ET
from typing import Any, Iterable, Tuple

WFS_NS = "http://www.opengis.net/wfs"
OGC_NS = "http://www.opengis.net/ogc"
GML_NS = "http://www.opengis.net/gml"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
FEATURE_NS = "http://gov.usgs.cida/nhdplus"

WFS_VERSION = "1.1.0"
POINT_WFS_VERSION = "1.0.0"
OUTPUT_FORMAT = "application/json"
GEOMETRY_PROPERTY = "the_geom"

XML_DECLARATION = b'<?xml version="1.0"?>'

# Characters XML 1.0 does not allow anywhere in a document
_ILLEGAL_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _text_element(parent: ET.Element, tag: str, text: str) -> ET.Element:
    el = ET.SubElement(parent, tag)
    el.text = text
    return el


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError(f"Identifier must be a string or integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text:
        raise ValueError("Identifiers must not be blank")
    if _ILLEGAL_XML_CHARS.search(text):
        raise ValueError(f"Identifier contains characters not allowed in XML: {text!r}")
    return text


def id_filter(id_field: str, ids: Iterable[Any]) -> ET.Element:
    """``ogc:Filter`` matching ``id_field`` against any of ``ids``.

    Always wraps the equality predicates in ``ogc:Or``, even for one id.
    """
    values = [_literal(v) for v in ids]
    if not values:
        raise ValueError("At least one identifier is required")

    flt = ET.Element("ogc:Filter", {"xmlns:ogc": OGC_NS})
    any_of = ET.SubElement(flt, "ogc:Or")
    for value in values:
        equal = ET.SubElement(any_of, "ogc:PropertyIsEqualTo")
        _text_element(equal, "ogc:PropertyName", id_field)
        _text_element(equal, "ogc:Literal", value)
    return flt


def bbox_filter(bounds: Tuple[float, float, float, float]) -> ET.Element:
    """``ogc:BBOX`` on the_geom from ``(west, south, east, north)`` bounds.

    GML corners are "lat lon" pairs separated by a space.
    """
    west, south, east, north = bounds
    flt = ET.Element("ogc:Filter", {"xmlns:ogc": OGC_NS})
    bbox = ET.SubElement(flt, "ogc:BBOX")
    _text_element(bbox, "ogc:PropertyName", GEOMETRY_PROPERTY)
    envelope = ET.SubElement(bbox, "gml:Envelope")
    _text_element(envelope, "gml:lowerCorner", f"{south} {west}")
    _text_element(envelope, "gml:upperCorner", f"{north} {east}")
    return flt


def get_feature_document(layer: str, flt: ET.Element, srs_name: str = "EPSG:4326") -> bytes:
    """Wrap a filter in a WFS 1.1.0 ``GetFeature`` request body."""
    root = ET.Element("wfs:GetFeature", {
        "xmlns:wfs": WFS_NS,
        "xmlns:xsi": XSI_NS,
        "xmlns:gml": GML_NS,
        "service": "WFS",
        "version": WFS_VERSION,
        "outputFormat": OUTPUT_FORMAT,
        "xsi:schemaLocation": f"{WFS_NS} http://schemas.opengis.net/wfs/{WFS_VERSION}/wfs.xsd",
    })
    query = ET.SubElement(root, "wfs:Query", {
        "xmlns:feature": FEATURE_NS,
        "typeName": f"feature:{layer}",
        "srsName": srs_name,
    })
    query.append(flt)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode").encode("utf-8")


def point_query_params(lon: float, lat: float, epsilon: float, srs: str = "EPSG:4269") -> dict:
    """GetFeature (WFS 1.0.0) parameters for the catchment under a point."""
    bbox = ",".join(str(v) for v in (lat, lon, lat + epsilon, lon + epsilon))
    return {
        "service": "WFS",
        "version": POINT_WFS_VERSION,
        "request": "GetFeature",
        "typeName": "nhdplus:catchmentsp",
        "outputFormat": OUTPUT_FORMAT,
        "srsName": srs,
        "bbox": f"{bbox},urn:ogc:def:crs:{srs}",
    }
