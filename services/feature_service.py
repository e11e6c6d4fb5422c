"""
Minimal client for one table of a hosted ArcGIS feature service.

Only what the map needs is covered: load the service and layer metadata,
tell whether the layer accepts new features, stage adds locally, push them
with the service-level applyEdits endpoint and query features for display.
Every call goes through the ArcGIS REST API with requests.
"""
import json
import logging

import requests

logger = logging.getLogger(__name__)

NOT_LOADED = 'not_loaded'
LOADED = 'loaded'
FAILED = 'failed'


class FeatureServiceError(Exception):
    """Raised when the feature service cannot be reached or answers with an error."""

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or []


def split_layer_url(url):
    """Returns (service_url, layer_id) for a FeatureServer or FeatureServer/<n> URL."""
    url = url.rstrip('/')
    last = url.split('/')[-1]
    if last.isdigit():
        return url.rsplit('/', 1)[0], int(last)
    return url, 0


class ServiceFeatureTable:
    def __init__(self, layer_url, api_key=None, session=None, timeout=30):
        self.service_url, self.layer_id = split_layer_url(layer_url)
        self.layer_url = f"{self.service_url}/{self.layer_id}"
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

        self.load_status = NOT_LOADED
        self.load_error = None
        self.service_info = None
        self.layer_info = None
        self._pending_adds = []

    @property
    def is_loaded(self):
        return self.load_status == LOADED

    @property
    def name(self):
        return (self.layer_info or {}).get('name') or self.layer_url

    @property
    def pending_adds(self):
        return list(self._pending_adds)

    def has_local_edits(self):
        return bool(self._pending_adds)

    def _params(self, **extra):
        params = {'f': 'json', **extra}
        if self.api_key:
            params['token'] = self.api_key
        return params

    def _parse(self, response):
        if response.status_code != 200:
            raise FeatureServiceError(
                f"Request failed with status code {response.status_code}: {response.text}",
                code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            raise FeatureServiceError(f"Unexpected response from feature service: {response.text[:200]}")
        # the REST API reports most errors with a 200 and an error body
        if isinstance(data, dict) and 'error' in data:
            error = data['error'] or {}
            logger.error("Feature service error %s: %s %s", error.get('code'), error.get('message'), error.get('details') or '')
            raise FeatureServiceError(
                error.get('message') or "Unknown feature service error",
                code=error.get('code'),
                details=error.get('details'),
            )
        return data

    def _get(self, url, **params):
        logger.debug("GET %s %s", url, params)
        try:
            response = self.session.get(url, params=self._params(**params), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FeatureServiceError(f"Failed to connect to feature service: {e}") from e
        return self._parse(response)

    def _post(self, url, **data):
        logger.debug("POST %s", url)
        try:
            response = self.session.post(url, data=self._params(**data), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FeatureServiceError(f"Failed to connect to feature service: {e}") from e
        return self._parse(response)

    def load(self):
        """
        Fetches the service and layer metadata.

        Safe to call again: a loaded table returns immediately, a table whose
        previous load failed is retried.

        Raises:
            FeatureServiceError: If either request fails. The table is then
                left in the 'failed' state with the error in load_error.
        """
        if self.is_loaded:
            return self
        logger.info("Loading feature service %s", self.service_url)
        try:
            self.service_info = self._get(self.service_url)
            self.layer_info = self._get(self.layer_url)
        except FeatureServiceError as e:
            self.load_status = FAILED
            self.load_error = e
            logger.error("Failed to load %s: %s", self.layer_url, e)
            raise
        self.load_status = LOADED
        self.load_error = None
        logger.info("Loaded table '%s' (capabilities: %s)", self.name, self.layer_info.get('capabilities'))
        return self

    def can_add(self):
        if not self.is_loaded:
            return False
        capabilities = {
            c.strip().lower()
            for c in (self.layer_info.get('capabilities') or '').split(',')
            if c.strip()
        }
        if 'create' in capabilities:
            return True
        # older services only advertise 'Editing'; once the finer grained ones
        # show up, a missing 'Create' means adds are switched off
        return 'editing' in capabilities and not ({'update', 'delete'} & capabilities)

    def create_feature(self, attributes, geometry):
        return {'attributes': dict(attributes), 'geometry': dict(geometry)}

    def add_feature(self, feature):
        """Stages a feature locally. Nothing is sent until apply_edits()."""
        if not self.is_loaded:
            raise FeatureServiceError("Feature table is not loaded")
        if not self.can_add():
            raise FeatureServiceError("Cannot add a feature to this feature table")
        self._pending_adds.append(feature)
        logger.debug("Staged feature %s (%d pending)", feature.get('attributes'), len(self._pending_adds))
        return feature

    def discard_feature(self, feature):
        """Drops a staged feature that has not been pushed yet."""
        self._pending_adds = [f for f in self._pending_adds if f is not feature]

    def apply_edits(self):
        """
        Pushes every staged add to the server.

        Returns:
            list[dict]: One entry per table, each with 'id', 'addResults',
                'updateResults' and 'deleteResults'. Empty when nothing was staged.

        Raises:
            FeatureServiceError: If the request fails. Staged adds are kept,
                discard_feature() drops the ones that should not be resent.
        """
        if not self._pending_adds:
            return []
        edits = [{'id': self.layer_id, 'adds': self._pending_adds}]
        logger.info("Applying %d edit(s) to %s", len(self._pending_adds), self.service_url)
        results = self._post(f"{self.service_url}/applyEdits", edits=json.dumps(edits))
        self._pending_adds = []
        return results if isinstance(results, list) else [results]

    def query_features(self, where='1=1', out_fields='*'):
        """Returns every feature matching `where`, in WGS84, following result paging."""
        features = []
        offset = 0
        while True:
            data = self._get(
                f"{self.layer_url}/query",
                where=where,
                outFields=out_fields,
                returnGeometry='true',
                outSR=4326,
                resultOffset=offset,
            )
            page = data.get('features', [])
            features.extend(page)
            if not data.get('exceededTransferLimit') or not page:
                break
            offset += len(page)
        return features

    def close(self):
        self.session.close()
