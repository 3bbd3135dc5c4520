"""
JSON Schemas for the data blobs embedded in storefront pages and returned by
the pagination APIs. Only the fields the scraper reads are constrained.
"""

ENTITY_ID = {"type": "integer", "minimum": 0, "maximum": 2 ** 64 - 1}

DATA_BAND_SCHEMA = {
    "type": "object",
    "properties": {
        "id": ENTITY_ID,
        "name": {"type": "string"},
    },
    "required": ["id", "name"],
}

CLIENT_ITEMS_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "id": ENTITY_ID,
            "page_url": {"type": "string"},
            "title": {"type": "string"},
            "type": {"type": "string"},
        },
        "required": ["id", "page_url"],
    },
}

PAGE_PROPERTIES_SCHEMA = {
    "type": "object",
    "properties": {
        "item_type": {"type": "string"},
        "item_id": ENTITY_ID,
    },
    "required": ["item_type", "item_id"],
}

DATA_TRALBUM_SCHEMA = {
    "type": "object",
    "properties": {
        "current": {
            "type": "object",
            "properties": {
                "release_date": {"type": ["string", "null"]},
                "publish_date": {"type": "string"},
            },
            "required": ["publish_date"],
        },
    },
    "required": ["current"],
}

_FAN = {
    "type": "object",
    "properties": {
        "fan_id": ENTITY_ID,
        "username": {"type": "string", "minLength": 1},
    },
    "required": ["fan_id", "username"],
}

_THUMB = {
    "type": "object",
    "properties": {
        "fan_id": ENTITY_ID,
        "username": {"type": "string", "minLength": 1},
        "token": {"type": "string"},
    },
    "required": ["fan_id", "username", "token"],
}

COLLECTORS_SCHEMA = {
    "type": "object",
    "properties": {
        "more_thumbs_available": {"type": "boolean"},
        "reviews": {"type": "array", "items": _FAN},
        "thumbs": {"type": "array", "items": _THUMB},
    },
    "required": ["more_thumbs_available", "reviews", "thumbs"],
}

THUMBS_PAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {"type": "array", "items": _THUMB},
        "more_available": {"type": "boolean"},
    },
    "required": ["results", "more_available"],
}

_DURATION = {"type": "string"}

RELEASE_LD_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "byArtist": {
            "type": "object",
            "properties": {"name": {"type": "string"}},
            "required": ["name"],
        },
        "duration": {"type": ["string", "null"]},
        "track": {
            "type": "object",
            "properties": {
                "numberOfItems": {"type": "integer", "minimum": 0},
                "itemListElement": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "item": {
                                "type": "object",
                                "properties": {"duration": _DURATION},
                                "required": ["duration"],
                            },
                        },
                        "required": ["item"],
                    },
                },
            },
            "required": ["numberOfItems", "itemListElement"],
        },
    },
    "required": ["name", "byArtist"],
}

_COLLECTION_ITEM = {
    "type": "object",
    "properties": {
        "item_id": ENTITY_ID,
        "item_url": {"type": "string"},
    },
    "required": ["item_id", "item_url"],
}

FAN_PAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "fan_data": {
            "type": "object",
            "properties": {
                "fan_id": ENTITY_ID,
                "name": {"type": "string"},
                "username": {"type": "string", "minLength": 1},
            },
            "required": ["fan_id", "name", "username"],
        },
        "collection_count": {"type": "integer", "minimum": 0},
        "collection_data": {
            "type": "object",
            "properties": {
                "last_token": {"type": ["string", "null"]},
                "sequence": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["last_token", "sequence"],
        },
        "item_cache": {
            "type": "object",
            "properties": {
                "collection": {
                    "type": "object",
                    "additionalProperties": _COLLECTION_ITEM,
                },
            },
            "required": ["collection"],
        },
    },
    "required": ["fan_data", "collection_count", "collection_data", "item_cache"],
}

COLLECTION_PAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "more_available": {"type": "boolean"},
        "last_token": {"type": ["string", "null"]},
        "items": {"type": "array", "items": _COLLECTION_ITEM},
    },
    "required": ["more_available", "last_token", "items"],
}
