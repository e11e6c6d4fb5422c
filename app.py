import atexit
import logging
import os

import dash
from dash import html, dcc, Output, Input, State, no_update
import dash_leaflet as dl
from config.helpers import *
from config.schema import PLACE_CATEGORIES, DEFAULT_CATEGORY
from services.data_loader import load_places
from services.feature_service import FeatureServiceError, ServiceFeatureTable
from services.place_editor import PlaceEditor
from flask_caching import Cache

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("places-map")

# An API key is required to access services hosted in ArcGIS Online.
# Keep it in .env, not in source code.
ARCGIS_API_KEY = os.getenv('ARCGIS_API_KEY')
FEATURE_SERVICE_URL = os.getenv(
    'FEATURE_SERVICE_URL',
    "https://services1.arcgis.com/6677msI40mnLuuLr/arcgis/rest/services/PointsofRelaxing/FeatureServer/0"
)

MAP_CENTER = [20, 0]
MAP_ZOOM = 2
IMAGERY_TILES = "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"
IMAGERY_ATTRIBUTION = "Tiles &copy; Esri &mdash; Source: Esri, Maxar, Earthstar Geographics, and the GIS User Community"

DIALOG_OPEN_STYLE = {
    'display': 'flex', 'position': 'fixed', 'inset': '0', 'zIndex': 2000,
    'alignItems': 'center', 'justifyContent': 'center', 'background': 'rgba(0, 0, 0, 0.45)',
}
DIALOG_HIDDEN_STYLE = {**DIALOG_OPEN_STYLE, 'display': 'none'}
BUSY_VISIBLE_STYLE = {'display': 'block'}
BUSY_HIDDEN_STYLE = {'display': 'none'}

if not ARCGIS_API_KEY:
    raise RuntimeError("Missing ARCGIS_API_KEY environment variable. Get an API key from your ArcGIS developer dashboard.")


editor = PlaceEditor(ServiceFeatureTable(FEATURE_SERVICE_URL, api_key=ARCGIS_API_KEY))
atexit.register(editor.close)

app = dash.Dash(__name__)

cache = Cache(app.server, config={"CACHE_TYPE": "SimpleCache", "CACHE_DEFAULT_TIMEOUT": 300})

app.title = "Points of Relaxing"
app.layout = html.Div([
    html.Div([
        html.Div([
            html.H1("Points of Relaxing"),
            html.P("Click anywhere on the map to add your favourite place to unwind", className="subtitle")
        ], className="header-meta"),
    ], className="header-container"),

    # Hidden stores
    dcc.Store(id='captured-point-store'),
    dcc.Store(id='layer-version-store', data=0),
    dcc.Interval(id='startup-refresh', interval=0, n_intervals=0, max_intervals=1),

    html.Div([
        html.P(id="results-info", className="results-info"),
        dl.Map(
            id="main-map",
            center=MAP_CENTER,
            zoom=MAP_ZOOM,
            style={'height': '80vh', 'width': '100%'},
            children=[
                dl.TileLayer(url=IMAGERY_TILES, attribution=IMAGERY_ATTRIBUTION),
                dl.LayerGroup(id="feature-layer"),
                dl.LayerGroup(id="pending-layer"),
            ]
        )
    ], className="map-container"),

    # Place dialog (modal overlay)
    html.Div([
        html.Div([
            html.H3("Add a place"),
            html.Label("Name", htmlFor="place-name"),
            dcc.Input(id="place-name", type="text", value="", placeholder="Quiet Cafe",
                      debounce=False, style={'width': '100%'}),
            html.Label("Description", htmlFor="place-description"),
            dcc.Textarea(id="place-description", value="", style={'width': '100%', 'height': '80px'}),
            html.Label("Category", htmlFor="place-category"),
            dcc.Dropdown(
                id="place-category",
                options=[{'label': c, 'value': c} for c in PLACE_CATEGORIES],
                value=DEFAULT_CATEGORY,
                clearable=False,
            ),
            html.P("Submitting...", id="place-dialog-busy", style=BUSY_HIDDEN_STYLE),
            html.Div([
                html.Button("Cancel", id="cancel-place", n_clicks=0, className="dialog-btn"),
                html.Button("Submit", id="submit-place", n_clicks=0, disabled=True,
                            className="dialog-btn dialog-btn--primary"),
            ], className="dialog-buttons", style={'display': 'flex', 'gap': '8px', 'marginTop': '12px'}),
        ], className="dialog-panel", style={
            'background': 'white', 'padding': '20px', 'borderRadius': '8px',
            'width': '360px', 'display': 'flex', 'flexDirection': 'column', 'gap': '6px'
        })
    ], id="place-dialog", style=DIALOG_HIDDEN_STYLE),

    dcc.ConfirmDialog(id="status-dialog"),
], className="_dash-container")


@cache.memoize()
def cached_places():
    return load_places(editor.table)


def pending_marker(point):
    return dl.CircleMarker(center=[point['y'], point['x']], radius=8, color="#ffcc00", fill=True)


# Load the table and draw its features once at startup and after every successful add
@app.callback(
    [Output('feature-layer', 'children'),
     Output('results-info', 'children')],
    [Input('startup-refresh', 'n_intervals'),
     Input('layer-version-store', 'data')]
)
def refresh_feature_layer(n_intervals, layer_version):
    if not editor.load():
        return [], f"Could not load the feature service: {editor.table.load_error}"
    try:
        places = cached_places()
    except FeatureServiceError as e:
        logger.error("Failed to query places: %s", e)
        return [], f"Could not load places: {e}"

    markers = [
        dl.Marker(
            position=[info['lat'], info['lon']],
            children=dl.Popup(
                build_popup_content(info['name'], info['category'], info['description']),
                maxWidth=350,
            )
        )
        for info in places
    ]
    return markers, f"Showing {len(places)} places from {editor.table.name}"


@app.callback(
    [Output('captured-point-store', 'data'),
     Output('place-dialog', 'style'),
     Output('pending-layer', 'children'),
     Output('place-name', 'value'),
     Output('place-description', 'value'),
     Output('place-category', 'value')],
    Input('main-map', 'clickData'),
    prevent_initial_call=True
)
def open_place_dialog(click_data):
    point = editor.capture_point(click_data)
    if point is None:
        return (no_update,) * 6
    # a fresh form every time: empty text, first category
    return point, DIALOG_OPEN_STYLE, [pending_marker(point)], "", "", DEFAULT_CATEGORY


@app.callback(
    Output('submit-place', 'disabled'),
    Input('place-name', 'value')
)
def toggle_submit_button(name):
    return not is_submittable(name)


@app.callback(
    [Output('place-dialog', 'style', allow_duplicate=True),
     Output('captured-point-store', 'data', allow_duplicate=True),
     Output('pending-layer', 'children', allow_duplicate=True)],
    Input('cancel-place', 'n_clicks'),
    prevent_initial_call=True
)
def cancel_place_dialog(n_clicks):
    if not n_clicks:
        return no_update, no_update, no_update
    logger.debug("Place dialog cancelled")
    return DIALOG_HIDDEN_STYLE, None, []


@app.callback(
    [Output('place-dialog', 'style', allow_duplicate=True),
     Output('captured-point-store', 'data', allow_duplicate=True),
     Output('pending-layer', 'children', allow_duplicate=True),
     Output('status-dialog', 'message'),
     Output('status-dialog', 'displayed'),
     Output('layer-version-store', 'data')],
    Input('submit-place', 'n_clicks'),
    [State('place-name', 'value'),
     State('place-description', 'value'),
     State('place-category', 'value'),
     State('captured-point-store', 'data'),
     State('layer-version-store', 'data')],
    running=[
        (Output('submit-place', 'disabled'), True, False),
        (Output('place-dialog-busy', 'style'), BUSY_VISIBLE_STYLE, BUSY_HIDDEN_STYLE),
        (Output('cancel-place', 'disabled'), True, False),
    ],
    prevent_initial_call=True
)
def submit_place(n_clicks, name, description, category, point, layer_version):
    if not n_clicks:
        return (no_update,) * 6

    status = editor.submit(name, description, category, point)

    layer_version_out = no_update
    if status is not None and status.title is None and status.message == FEATURE_ADDED_MESSAGE:
        cache.delete_memoized(cached_places)
        layer_version_out = (layer_version or 0) + 1

    if status is None:
        message, displayed = no_update, False
    else:
        message, displayed = format_status_message(status.title, status.message), True

    return DIALOG_HIDDEN_STYLE, None, [], message, displayed, layer_version_out


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8050))
    app.run(debug=False, host='0.0.0.0', port=port)
