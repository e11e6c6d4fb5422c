from enum import Enum


class PlaceCategory(Enum):
    # order matters: the dialog pre-selects the first one
    Cafe = 'Cafe'
    Park = 'Park'
    Nature = 'Nature'
    Water = 'Water'
    Urban = 'Urban'
    Other = 'Other'


PLACE_CATEGORIES = [c.value for c in PlaceCategory]
DEFAULT_CATEGORY = PLACE_CATEGORIES[0]

# Schema for the features of the PointsofRelaxing layer
FEATURE_SCHEMA = {
    'OBJECTID': {
        'type': 'int',
        'default': None,
    },
    'Name': {
        'type': 'str',
        'default': 'Unnamed Place',
    },
    'Description': {
        'type': 'str',
        'default': '',
    },
    'Category': {
        # free text on the service side, but we only ever write PlaceCategory values
        'type': 'str',
        'default': PlaceCategory.Other.value,
    },
}
