import logging

from config.helpers import extract_feature_info

logger = logging.getLogger(__name__)


def load_places(table, where='1=1'):
    """
    Loads the places stored in the feature table for display on the map.

    Args:
        table (ServiceFeatureTable): A loaded feature table.
        where (str, optional): SQL-like filter for the layer query. Defaults to every feature.

    Returns:
        list[dict]: Place info dicts (see extract_feature_info). Features
            without a usable location are dropped.
    """
    features = table.query_features(where=where)

    places = []
    for feature in features:
        info = extract_feature_info(feature)
        if info['lat'] is None or info['lon'] is None:
            logger.debug("Skipping feature %s without geometry", info['id'])
            continue
        places.append(info)

    logger.info("Loaded %d/%d places from '%s'", len(places), len(features), table.name)
    return places
