"""Shared test fixtures.

Unit tests never talk to AWS: boto3 clients are mocked or stubbed, and the
reconciler runs against the in-memory store.  Tests needing real AWS
resources should be marked with ``@pytest.mark.integration``.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from dave.user_api.settings import get_settings


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep ambient DAVE_* / AWS variables out of tests and reset the settings cache."""
    for key in list(os.environ):
        if key.startswith("DAVE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
