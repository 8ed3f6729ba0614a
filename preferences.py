"""
User preference storage for ScanTracker

Gender and height are the only persisted settings. They live in a key-value
store that is passed to the report engine, so the engine never depends on a
process-wide global and tests can use the in-memory store.

The store contract is two methods:
- ``get(key, default=None)``
- ``set(key, value)``
"""

import json
import logging
import os

from jsonschema import ValidationError, validate

from core import InvalidInputError, parse_gender, parse_height_cm
from shared_models import Gender, UserProfile

logger = logging.getLogger(__name__)

GENDER_KEY = "inbody_gender"
HEIGHT_KEY = "inbody_height"

DEFAULT_GENDER = Gender.MALE.value

# JSON Schema for the preference file
PREFERENCES_SCHEMA = {
    "type": "object",
    "properties": {
        # Any string; load_profile falls back to the default gender when
        # parse_gender does not recognize it
        GENDER_KEY: {"type": "string"},
        HEIGHT_KEY: {"type": ["number", "string", "null"]},
    },
}


class PreferenceStore:
    """Interface of a key-value preference store"""

    def get(self, key, default=None):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError


class InMemoryPreferenceStore(PreferenceStore):
    """Dictionary-backed store, used in tests and short-lived sessions"""

    def __init__(self, initial=None):
        self._values = dict(initial or {})

    def get(self, key, default=None):
        return self._values.get(key, default)

    def set(self, key, value):
        self._values[key] = value

    def as_dict(self):
        return dict(self._values)


class JsonFilePreferenceStore(PreferenceStore):
    """
    Store persisted as a small JSON document.

    The file is read once at construction. A missing file starts empty; an
    unreadable, undecodable or invalid one is logged and replaced by defaults
    on the next write. Every ``set`` rewrites the whole document.
    """

    def __init__(self, path):
        self.path = path
        self._values = self._load()

    def _load(self):
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                values = json.load(f)
            validate(values, PREFERENCES_SCHEMA)
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        except (ValueError, OSError, ValidationError) as e:
            logger.warning(f"Ignoring invalid preference file {self.path}: {e}")
            return {}
        return values

    def get(self, key, default=None):
        return self._values.get(key, default)

    def set(self, key, value):
        self._values[key] = value
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2)
        os.replace(tmp_path, self.path)


def load_profile(store):
    """
    Reads the user profile from a preference store.

    Defaults are gender 'male' and no height. An unrecognized stored gender
    falls back to the default.

    Args:
        store (PreferenceStore): The injected store.

    Returns:
        UserProfile: The loaded profile.
    """
    stored_gender = store.get(GENDER_KEY, DEFAULT_GENDER)
    try:
        gender = parse_gender(stored_gender or DEFAULT_GENDER)
    except InvalidInputError:
        logger.warning(f"Stored gender {stored_gender!r} not recognized, using default")
        gender = parse_gender(DEFAULT_GENDER)

    height_cm = parse_height_cm(store.get(HEIGHT_KEY))
    return UserProfile(gender=gender, height_cm=height_cm)


def save_profile(store, profile):
    """Writes both profile settings back to the store."""
    store.set(GENDER_KEY, profile.gender.value)
    store.set(HEIGHT_KEY, profile.height_cm)
