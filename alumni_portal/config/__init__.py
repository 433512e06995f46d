"""ALUMNI PORTAL CONFIG MODULE

``SETTINGS`` starts from ``base`` and is overlaid with the settings of the
environment named in ``ENVIRONMENT``. Nested mappings such as ``logging`` and
``RATE_LIMITING`` are merged key by key.
"""

import collections.abc
import os

from alumni_portal.config import base, prod, staging, test

OVERRIDES = {
    "staging": staging.SETTINGS,
    "prod": prod.SETTINGS,
    "test": test.SETTINGS,
    "testing": test.SETTINGS,
}


def merge_settings(target, overrides):
    for key, value in overrides.items():
        if isinstance(value, collections.abc.Mapping):
            target[key] = merge_settings(dict(target.get(key) or {}), value)
        else:
            target[key] = value
    return target


SETTINGS = merge_settings(
    dict(base.SETTINGS), OVERRIDES.get(os.getenv("ENVIRONMENT", "dev"), {})
)
