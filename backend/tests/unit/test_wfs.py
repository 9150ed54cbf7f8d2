import xml.etree.ElementTree as ET

import pytest
from pyproj import Transformer
from shapely.geometry import box

from nhdplus.models import NHDPlusLayer
from nhdplus.settings import NHDPLUS_WFS_URL
from nhdplus.wfs import (
    check_box_layer,
    check_id_layer,
    get_nhdplus_bybox,
    get_nhdplus_byid,
)

NS = {
    "ogc": "http://www.opengis.net/ogc",
    "gml": "http://www.opengis.net/gml",
    "wfs": "http://www.opengis.net/wfs",
}


def _posted_xml(call) -> ET.Element:
    return ET.fromstring(call['content'])


class TestLayerValidation:

    @pytest.mark.parametrize("layer", ["catchmentsp", NHDPlusLayer.FLOWLINE])
    def test_valid_id_layers(self, layer):
        assert check_id_layer(layer) in (NHDPlusLayer.CATCHMENT, NHDPlusLayer.FLOWLINE)

    @pytest.mark.parametrize("layer", ["nhdarea", "nhdwaterbody", "catchment", "", "NHDFLOWLINE_NETWORK"])
    def test_invalid_id_layers(self, layer):
        with pytest.raises(ValueError, match="Layer must be one of catchmentsp, nhdflowline_network"):
            check_id_layer(layer)

    @pytest.mark.parametrize("layer", ["nhdarea", "nhdwaterbody", "catchmentsp", "nhdflowline_network"])
    def test_valid_box_layers(self, layer):
        assert check_box_layer(layer).value == layer

    def test_invalid_box_layer_names_valid_set(self):
        with pytest.raises(ValueError) as excinfo:
            check_box_layer("huc12")
        assert "nhdarea, nhdwaterbody, catchmentsp, nhdflowline_network" in str(excinfo.value)


class TestGetByIds:

    def test_flowline_query_with_three_ids(self, mocked_httpx, make_fc):
        mocked_httpx['responses'] = [
            (200, make_fc({"comid": 5329303}, {"comid": 5329293}, {"comid": 5329305}))
        ]

        flowlines = get_nhdplus_byid([5329303, 5329293, 5329305], "nhdflowline_network")

        assert flowlines.values("comid") == [5329303, 5329293, 5329305]
        assert len(mocked_httpx['calls']) == 1

        call = mocked_httpx['calls'][0]
        assert call['method'] == "POST"
        assert call['url'] == NHDPLUS_WFS_URL

        root = _posted_xml(call)
        or_el = root.find(".//ogc:Filter/ogc:Or", NS)
        predicates = or_el.findall("ogc:PropertyIsEqualTo", NS)
        assert len(predicates) == 3
        assert {p.find("ogc:PropertyName", NS).text for p in predicates} == {"comid"}
        assert root.find("wfs:Query", NS).get("typeName") == "feature:nhdflowline_network"

    def test_catchment_query_uses_featureid(self, mocked_httpx):
        get_nhdplus_byid(["5329303"], NHDPlusLayer.CATCHMENT)

        root = _posted_xml(mocked_httpx['calls'][0])
        names = [el.text for el in root.iter("{http://www.opengis.net/ogc}PropertyName")]
        assert names == ["featureid"]

    @pytest.mark.parametrize("layer", ["nhdarea", "nhdwaterbody", "bogus"])
    def test_invalid_layer_makes_no_request(self, mocked_httpx, layer):
        with pytest.raises(ValueError, match="Layer must be one of"):
            get_nhdplus_byid([1, 2], layer)

        assert mocked_httpx['calls'] == []

    def test_empty_ids_make_no_request(self, mocked_httpx):
        with pytest.raises(ValueError):
            get_nhdplus_byid([], "catchmentsp")

        assert mocked_httpx['calls'] == []

    def test_service_error_gives_empty_result(self, mocked_httpx, caplog):
        mocked_httpx['responses'] = [(404, b"not found")]

        result = get_nhdplus_byid([1], "catchmentsp")

        assert result.is_empty
        assert "404" in caplog.text


class TestGetByBox:

    def test_box_in_4326(self, mocked_httpx):
        get_nhdplus_bybox((-89.56, 42.99, -89.55, 43.0), "nhdwaterbody")

        call = mocked_httpx['calls'][0]
        assert call['method'] == "POST"

        root = _posted_xml(call)
        assert root.find("wfs:Query", NS).get("typeName") == "feature:nhdwaterbody"
        envelope = root.find(".//ogc:BBOX/gml:Envelope", NS)
        assert envelope.find("gml:lowerCorner", NS).text == "42.99 -89.56"
        assert envelope.find("gml:upperCorner", NS).text == "43.0 -89.55"

    def test_box_is_reprojected_before_bounds(self, mocked_httpx):
        tr = Transformer.from_crs(4326, 3857, always_xy=True)
        x1, y1 = tr.transform(-89.56, 42.99)
        x2, y2 = tr.transform(-89.55, 43.0)

        get_nhdplus_bybox(box(x1, y1, x2, y2), "nhdarea", crs=3857)

        root = _posted_xml(mocked_httpx['calls'][0])
        lower = root.find(".//gml:lowerCorner", NS).text.split(" ")
        upper = root.find(".//gml:upperCorner", NS).text.split(" ")

        assert float(lower[0]) == pytest.approx(42.99, abs=1e-6)
        assert float(lower[1]) == pytest.approx(-89.56, abs=1e-6)
        assert float(upper[0]) == pytest.approx(43.0, abs=1e-6)
        assert float(upper[1]) == pytest.approx(-89.55, abs=1e-6)

    @pytest.mark.parametrize("layer", ["huc12", "catchment", "NHDAREA"])
    def test_invalid_layer_makes_no_request(self, mocked_httpx, layer):
        with pytest.raises(ValueError, match="Layer must be one of"):
            get_nhdplus_bybox((-89.56, 42.99, -89.55, 43.0), layer)

        assert mocked_httpx['calls'] == []

    def test_bad_region_makes_no_request(self, mocked_httpx):
        with pytest.raises(ValueError):
            get_nhdplus_bybox((1, 2, 3), "nhdarea")

        assert mocked_httpx['calls'] == []

    def test_decode_failure_gives_empty_result(self, mocked_httpx):
        mocked_httpx['responses'] = [(200, b"<ows:ExceptionReport/>")]

        assert get_nhdplus_bybox((-89.56, 42.99, -89.55, 43.0), "nhdarea").is_empty
