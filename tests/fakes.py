"""
Fake feature service pieces: an HTTP session, responses and result payloads.

FakeSession answers GETs from a dict of URL -> payload and records every
POST so tests can look at what was sent.
"""

import json

SERVICE_URL = "https://services.example.com/arcgis/rest/services/PointsofRelaxing/FeatureServer"
LAYER_URL = f"{SERVICE_URL}/0"


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    def __init__(self, get_responses=None, post_responses=None):
        self.get_responses = dict(get_responses or {})
        self.post_responses = list(post_responses or [])
        self.gets = []
        self.posts = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.gets.append((url, params))
        response = self.get_responses[url]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def post(self, url, data=None, timeout=None):
        self.posts.append((url, data))
        response = self.post_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def make_layer_info(capabilities="Create,Delete,Query,Update,Editing"):
    return {
        "id": 0,
        "name": "PointsofRelaxing",
        "geometryType": "esriGeometryPoint",
        "capabilities": capabilities,
    }


def make_add_result(object_id=1, error=None):
    if error:
        return {"objectId": object_id, "success": False, "error": error}
    return {"objectId": object_id, "success": True}


def make_edit_results(*add_results, layer_id=0):
    return [{"id": layer_id, "addResults": list(add_results), "updateResults": [], "deleteResults": []}]


def make_feature(object_id, name, x, y, category="Cafe", description=""):
    return {
        "attributes": {"OBJECTID": object_id, "Name": name, "Description": description, "Category": category},
        "geometry": {"x": x, "y": y},
    }
