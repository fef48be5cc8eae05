"""
Pytest configuration and fixtures for EcoSphere tests.

Provides:
- A fixed clock and seeded random generators
- A generated Office history
- Fake AI clients for the insights collaborator
"""

import json
from datetime import datetime

import numpy as np
import pytest

from ecosphere.data_simulator import generate
from ecosphere.insights import fallback_recommendations


@pytest.fixture
def now() -> datetime:
    """Fixed clock: 2024-03-05 14:00 local."""
    return datetime(2024, 3, 5, 14, 0, 0)


@pytest.fixture
def rng():
    """Seeded generator so magnitudes are reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def office_history(now, rng):
    """24 hours of Office telemetry ending at the fixed clock."""
    return generate("Office", 24, now=now, rng=rng)


@pytest.fixture
def valid_recommendations():
    """Seven well-formed recommendations covering every type."""
    recs = fallback_recommendations("Office")
    for r in recs:
        r["title"] = "AI " + r["title"]
    return recs


class FakeClient:
    """Stands in for GeminiClient; returns canned text or raises."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def fake_client_factory():
    return FakeClient


@pytest.fixture
def good_client(valid_recommendations):
    return FakeClient(text=json.dumps(valid_recommendations))
