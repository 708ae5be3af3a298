import json
import random

import pytest


_ENV_VARS = (
    "GZC_COMPRESSION_LEVEL",
    "GZC_MAX_OUTPUT_LEN",
    "GZC_HEADER_CRC",
    "GZC_MTIME",
    "GZC_LOG_LEVEL",
    "GZC_CONFIG",
    "SOURCE_DATE_EPOCH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def log_data():
    """Repetitive JSON log lines (highly compressible)."""
    entries = [
        {
            "timestamp": "2026-02-17T12:00:00Z",
            "level": "INFO",
            "service": "auth-service",
            "message": f"User logged in successfully (request #{i})",
        }
        for i in range(200)
    ]
    return json.dumps(entries).encode("utf-8")


@pytest.fixture
def random_data():
    """Incompressible bytes, deterministic across runs."""
    return random.Random(1234).randbytes(50_000)
