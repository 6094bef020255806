"""Shared fixtures for the test suite."""

from __future__ import annotations

import base64

import pytest

from .fakes import PNG_BYTES


@pytest.fixture()
def png_data_url() -> str:
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
