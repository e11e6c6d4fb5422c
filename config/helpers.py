import logging

from config.schema import FEATURE_SCHEMA, PLACE_CATEGORIES
from dash import html, dcc

logger = logging.getLogger(__name__)

FEATURE_ADDED_MESSAGE = "Feature successfully added"
EDIT_FAILURE_TITLE = "Exception applying edits on server"

WGS84_WKIDS = (4326,)
WEB_MERCATOR_WKIDS = (3857, 102100, 102113)
WEB_MERCATOR_HALF_WORLD = 20037508.342789244


# Helper: normalize/coerce values by type (based on the data type specified on the schema)
def coerce_value(value, type_decl):
    if value is None:
        return None
    if type_decl == 'str':
        try:
            return str(value)
        except Exception:
            return None
    if type_decl == 'int':
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    if type_decl == 'float':
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    return value

def coerce_from_schema(fields, schema, key):
    value = fields.get(key)
    type_decl = schema[key]['type']
    default = schema[key]['default']
    coerced = coerce_value(value, type_decl)
    return coerced if coerced is not None else default


def _wrap(value, half_world):
    if -half_world <= value <= half_world:
        return value
    return ((value + half_world) % (2 * half_world)) - half_world


def normalize_central_meridian(point):
    """Wraps a point whose x went past the antimeridian back into the world.

    Leaflet keeps counting longitude when the user pans across copies of the
    world, so a click east of the date line can come back as lng=200. The
    service stores it at -160.

    Args:
        point (dict): ArcGIS JSON point with 'x', 'y' and 'spatialReference'.

    Returns:
        dict: A new point. Coordinates already within range are left untouched.
    """
    wkid = (point.get('spatialReference') or {}).get('wkid', 4326)
    if wkid in WGS84_WKIDS:
        x = _wrap(point['x'], 180.0)
    elif wkid in WEB_MERCATOR_WKIDS:
        x = _wrap(point['x'], WEB_MERCATOR_HALF_WORLD)
    else:
        logger.warning("Cannot normalize point in spatial reference %s, leaving it as is", wkid)
        x = point['x']
    return {**point, 'x': x}


def point_from_click(click_data):
    """Turns a dash-leaflet clickData payload into a WGS84 point, or None."""
    if not click_data:
        return None
    latlng = click_data.get('latlng') if isinstance(click_data, dict) else click_data
    try:
        if isinstance(latlng, dict):
            lat, lon = float(latlng['lat']), float(latlng['lng'])
        else:
            lat, lon = float(latlng[0]), float(latlng[1])
    except (KeyError, IndexError, TypeError, ValueError):
        logger.debug("Ignoring click without a usable location: %r", click_data)
        return None
    return {'x': lon, 'y': lat, 'spatialReference': {'wkid': 4326}}


def is_submittable(name):
    # strip only for the check, the typed value stays as it is
    return bool(name and name.strip())


def build_attributes(name, description, category):
    if category not in PLACE_CATEGORIES:
        raise ValueError(f"Unknown category {category!r}, expected one of {PLACE_CATEGORIES}")
    return {
        'Name': name,
        'Description': description or '',
        'Category': category,
    }


def _feature_edit_results(table_result):
    return (
        list(table_result.get('addResults') or [])
        + list(table_result.get('updateResults') or [])
        + list(table_result.get('deleteResults') or [])
    )


def interpret_edit_results(edit_results):
    """
    Turns an applyEdits response into the (title, message) to show the user.

    Only the first feature result of the first table is looked at. A
    submission adds exactly one feature, so that is the one that matters;
    any other failures in the batch are logged and otherwise ignored.

    Args:
        edit_results (list[dict]): Per-table results as returned by the
            service-level applyEdits endpoint.

    Returns:
        tuple | None: (title, message), title being None on success. None
            when the server reported no edits at all.
    """
    if not edit_results:
        logger.warning("applyEdits returned no table results")
        return None

    feature_results = _feature_edit_results(edit_results[0])
    if not feature_results:
        logger.warning("applyEdits returned no feature results for table %s", edit_results[0].get('id'))
        return None

    first = feature_results[0]
    ignored = feature_results[1:] + [r for t in edit_results[1:] for r in _feature_edit_results(t)]
    for r in ignored:
        if r.get('error'):
            logger.warning("Unreported edit failure for object %s: %s", r.get('objectId'), r['error'])

    error = first.get('error')
    if not error and first.get('success', True):
        logger.info("Feature %s added", first.get('objectId'))
        return None, FEATURE_ADDED_MESSAGE

    description = (error or {}).get('description') or "The server rejected the edit"
    logger.error("Edit failed for object %s: %s", first.get('objectId'), error)
    return EDIT_FAILURE_TITLE, description


def format_status_message(title, message):
    # dcc.ConfirmDialog only takes plain text, so the title goes on its own line
    if title:
        return f"{title}\n\n{message}"
    return message


def build_category_badge(category):
    if not category:
        return None
    return html.Span(category, className=f"type-badge type-badge--{category.lower()}")


def build_popup_content(name, category, description):
    badge = build_category_badge(category)
    return html.Div([
        html.Div([
            html.H4(name, className="popup-title"),
            html.Div(badge, className="type-badges") if badge else None,
            html.Div(
                dcc.Markdown(description, className="notes") if description else None,
                className="notes-wrapper"
            ),
        ], className="popup-content")
    ])


def extract_feature_info(feature):
    """
    Args:
        feature (dict): Feature as returned by a layer query. It is expected
            to contain an 'attributes' dictionary with keys 'OBJECTID',
            'Name', 'Description' and 'Category', and a WGS84 'geometry'.

    Returns:
        dict: A cleaned dictionary with the keys 'id', 'name', 'description',
            'category', 'lat' and 'lon'. 'lat'/'lon' are None when the
            feature has no usable geometry.
    """
    f = feature.get('attributes') or {}
    coerce_feature_schema = lambda key: coerce_from_schema(f, FEATURE_SCHEMA, key)

    geometry = feature.get('geometry') or {}
    lat = coerce_value(geometry.get('y'), 'float')
    lon = coerce_value(geometry.get('x'), 'float')
    if lat is None or lon is None:
        lat, lon = None, None

    return {
        'id': coerce_feature_schema('OBJECTID'),
        'name': coerce_feature_schema('Name'),
        'description': coerce_feature_schema('Description'),
        'category': coerce_feature_schema('Category'),
        'lat': lat,
        'lon': lon,
    }
