import httpx
import orjson
import pytest

from nhdplus.transport import WebClient


def feature_collection(*properties, geometry=None):
    """GeoJSON FeatureCollection bytes with one feature per properties dict."""
    geometry = geometry or {
        "type": "Polygon",
        "coordinates": [
            [
                [-76.88, 39.48],
                [-76.88, 39.49],
                [-76.87, 39.49],
                [-76.87, 39.48],
                [-76.88, 39.48],
            ]
        ],
    }
    return orjson.dumps({
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": geometry, "properties": props}
            for props in properties
        ],
    })


@pytest.fixture
def make_fc():
    return feature_collection


@pytest.fixture
def mocked_httpx(monkeypatch):
    """Replace httpx.Client with a fake that records every request.

    Queue responses as ``(status_code, body)`` tuples or exceptions in
    ``captured['responses']``; when the queue is empty an empty
    FeatureCollection with status 200 is returned.
    """
    captured = {'calls': [], 'responses': []}

    class MockResponse:
        def __init__(self, status_code, content, url):
            self.status_code = status_code
            self.content = content
            self.url = url

    class MockClient:
        def __init__(self, *args, **kwargs):
            captured['client_kwargs'] = kwargs

        def request(self, method, url, params=None, content=None, headers=None):
            captured['calls'].append({
                'method': method,
                'url': url,
                'params': params,
                'content': content,
                'headers': headers,
            })
            if captured['responses']:
                outcome = captured['responses'].pop(0)
            else:
                outcome = (200, feature_collection())
            if isinstance(outcome, Exception):
                raise outcome
            status_code, body = outcome
            return MockResponse(status_code, body, str(httpx.URL(url, params=params)))

        def close(self):
            return None

    monkeypatch.setattr("nhdplus.transport.httpx.Client", MockClient)
    monkeypatch.setattr(WebClient._send.retry, "sleep", lambda seconds: None)
    return captured
