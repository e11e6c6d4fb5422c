"""
Add-a-place workflow on top of a ServiceFeatureTable.

One PlaceEditor is created at startup and shared by the Dash callbacks. It
holds the feature table and makes sure only one submission talks to the
server at a time. A submission goes through

    validate -> (rejected | add locally -> push edits -> success | failure)

and always ends in a StatusMessage for the alert dialog, or None when the
server had nothing to report.
"""
import logging
import threading
from collections import namedtuple

from config.helpers import (
    EDIT_FAILURE_TITLE,
    build_attributes,
    interpret_edit_results,
    is_submittable,
    normalize_central_meridian,
    point_from_click,
)
from services.feature_service import FeatureServiceError

logger = logging.getLogger(__name__)

StatusMessage = namedtuple('StatusMessage', ['title', 'message'])

CANNOT_ADD_MESSAGE = "Cannot add a feature to this feature table"
NAME_REQUIRED_MESSAGE = "A name is required"
NO_POINT_MESSAGE = "Click on the map to choose where the place is"
BUSY_MESSAGE = "A feature is already being submitted"


class PlaceEditor:
    def __init__(self, table):
        self.table = table
        self._submit_lock = threading.Lock()

    @property
    def submitting(self):
        return self._submit_lock.locked()

    def load(self):
        """Loads the feature table. Returns False (and leaves the layer empty) on failure."""
        try:
            self.table.load()
        except FeatureServiceError:
            return False
        return True

    def capture_point(self, click_data):
        point = point_from_click(click_data)
        if point is None:
            return None
        normalized = normalize_central_meridian(point)
        if normalized['x'] != point['x']:
            logger.info("Normalized clicked longitude %s to %s", point['x'], normalized['x'])
        return normalized

    def submit(self, name, description, category, point):
        if not is_submittable(name):
            return StatusMessage(None, NAME_REQUIRED_MESSAGE)
        if not point:
            return StatusMessage(None, NO_POINT_MESSAGE)
        try:
            attributes = build_attributes(name, description, category)
        except ValueError as e:
            logger.warning("Rejected submission: %s", e)
            return StatusMessage(None, str(e))

        if not self._submit_lock.acquire(blocking=False):
            logger.warning("Submission of '%s' rejected, another one is in flight", name)
            return StatusMessage(None, BUSY_MESSAGE)
        try:
            feature = self.table.create_feature(attributes, normalize_central_meridian(point))
            if not self.table.can_add():
                logger.warning("Table '%s' does not accept new features", self.table.name)
                return StatusMessage(None, CANNOT_ADD_MESSAGE)
            self.table.add_feature(feature)
            return self._apply_edits(feature)
        finally:
            self._submit_lock.release()

    def _apply_edits(self, feature):
        try:
            results = self.table.apply_edits()
        except FeatureServiceError as e:
            # each submission pushes only its own add, a retry is a new click
            self.table.discard_feature(feature)
            cause = e.__cause__ or e
            logger.error("Applying edits failed: %s", cause)
            return StatusMessage(EDIT_FAILURE_TITLE, str(cause))

        outcome = interpret_edit_results(results)
        if outcome is None:
            return None
        return StatusMessage(*outcome)

    def close(self):
        self.table.close()
