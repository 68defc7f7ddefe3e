"""
Root pytest configuration.

pytest-django reads DJANGO_SETTINGS_MODULE from pyproject.toml; the default
below covers running pytest from a different working directory. Shared
fixtures live in app/conftest.py and per-app tests/conftest.py.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings_test")
