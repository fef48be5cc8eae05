"""
Sustainability recommendations from the Gemini API.

The client is handed in by the caller (built from config with
``GeminiClient.from_config``); when it is missing or the call fails in any
way, ``get_sustainability_insights`` returns the static fallback list, so
callers always get a usable list of recommendations.

Usage:
    client = GeminiClient.from_config(load_cfg())
    recs = get_sustainability_insights(records, "Office", "water", client=client)
"""

import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import requests
from requests.adapters import HTTPAdapter

from ecosphere.data_simulator import InvalidArgument, get_profile

logger = logging.getLogger(__name__)

RECOMMENDATION_TYPES = ("energy", "water", "waste", "carbon")
REQUIRED_FIELDS = ("title", "description", "type", "impact", "action")
MIN_IMPACT, MAX_IMPACT = 1, 30


class InsightsError(RuntimeError):
    """Raised when the AI service cannot produce usable recommendations."""


def fallback_recommendations(building_type: str) -> List[Dict[str, Any]]:
    return [
        {
            "title": f"{building_type} Peak Shifting",
            "description": "Shift heavy machinery operation to off-peak hours (11 PM - 6 AM) to reduce grid strain.",
            "type": "energy",
            "impact": 12,
            "action": "Reschedule maintenance",
        },
        {
            "title": "HVAC Optimization",
            "description": "Adjust setpoints by 2°C during low occupancy periods detected by AI sensors.",
            "type": "energy",
            "impact": 15,
            "action": "Update BMS settings",
        },
        {
            "title": "Water Leak Detection",
            "description": "Anomalous flow patterns detected in Zone B during night hours suggest a minor leak.",
            "type": "water",
            "impact": 8,
            "action": "Inspect Zone B plumbing",
        },
        {
            "title": "Greywater Recycling",
            "description": "Implement greywater treatment for non-potable uses like irrigation and flushing.",
            "type": "water",
            "impact": 18,
            "action": "Enable recycling valve",
        },
        {
            "title": "Waste Segregation Audit",
            "description": "Contamination levels in recycling bins are high. Improve signage and staff training.",
            "type": "waste",
            "impact": 20,
            "action": "Staff training session",
        },
        {
            "title": "Composting Protocol",
            "description": "Divert organic waste to onsite composting units to reduce landfill contribution.",
            "type": "waste",
            "impact": 25,
            "action": "Deploy compost bins",
        },
        {
            "title": "Carbon Offset Protocol",
            "description": "Purchase renewable energy certificates to offset unavoidable operational emissions.",
            "type": "carbon",
            "impact": 10,
            "action": "Procure RECs",
        },
    ]


def summarize(history, window: int = 24) -> Dict[str, float]:
    """Mean and peak energy over the last ``window`` observations."""
    if isinstance(window, bool) or not isinstance(window, (int, np.integer)) or window < 1:
        raise InvalidArgument(f"window must be a positive integer, got {window!r}")
    if isinstance(history, pd.DataFrame):
        history = history.to_dict(orient="records")
    recent = list(history if history is not None else [])[-int(window):]
    if not recent:
        raise InvalidArgument("cannot summarize an empty history")
    try:
        energy = np.array([float(r["energy"]) for r in recent])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidArgument(f"history needs numeric energy values: {e}")
    return {"avg_energy": float(energy.mean()), "peak_energy": float(energy.max())}


def build_prompt(building_type: str, stats: Dict[str, float], focus: str = "energy") -> str:
    return f"""
As a Sustainability AI Expert, analyze this building data for a {building_type} facility:
- Average Energy: {stats['avg_energy']:.2f} kWh
- Peak Energy: {stats['peak_energy']:.2f} kWh
- Building Type: {building_type}
- Primary Focus Area: {focus}

Provide 6-8 specific, actionable optimization recommendations in JSON format.
Ensure you include at least one recommendation for EACH of these categories: 'energy', 'water', 'waste', 'carbon'.
Prioritize recommendations related to the Primary Focus Area ({focus}).

Each recommendation should have:
- title: Short title
- description: Detailed explanation
- type: one of 'energy', 'water', 'waste', 'carbon'
- impact: estimated percentage improvement (number 1-30)
- action: The primary action to take

Format the response as a valid JSON array of objects.
""".strip()


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    return text


def parse_recommendations(text: str) -> List[Dict[str, Any]]:
    """Parse and validate the model's JSON answer.

    Raises InsightsError unless the answer is a JSON array of complete
    records that together cover every recommendation type. Impacts are
    clamped to [1, 30].
    """
    try:
        data = json.loads(_strip_fences(text or ""))
    except json.JSONDecodeError as e:
        raise InsightsError(f"response is not valid JSON: {e}") from e
    if not isinstance(data, list) or not data:
        raise InsightsError("response is not a non-empty JSON array")

    recs = []
    for item in data:
        if not isinstance(item, dict) or any(k not in item for k in REQUIRED_FIELDS):
            raise InsightsError(f"malformed recommendation: {item!r}")
        if item["type"] not in RECOMMENDATION_TYPES:
            raise InsightsError(f"unknown recommendation type {item['type']!r}")
        try:
            impact = float(item["impact"])
        except (TypeError, ValueError) as e:
            raise InsightsError(f"non-numeric impact {item['impact']!r}") from e
        if not np.isfinite(impact):
            raise InsightsError(f"non-finite impact {item['impact']!r}")
        impact = min(float(MAX_IMPACT), max(float(MIN_IMPACT), impact))
        recs.append({
            "title": str(item["title"]),
            "description": str(item["description"]),
            "type": item["type"],
            "impact": int(impact) if impact.is_integer() else impact,
            "action": str(item["action"]),
        })

    missing = set(RECOMMENDATION_TYPES) - {r["type"] for r in recs}
    if missing:
        raise InsightsError(f"no recommendations for {sorted(missing)}")
    if not 6 <= len(recs) <= 8:
        logger.warning("Expected 6-8 recommendations, got %d", len(recs))
    return recs


class GeminiClient:
    """Thin client for Gemini's generateContent endpoint.

    One request per call, no retries. Responses are requested as JSON.
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-2.0-flash",
                 timeout: float = 30, session: Optional[requests.Session] = None):
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self.model = model
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=8)
            session.mount("https://", adapter)
        self._session = session

        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not set - AI insights will use the fallback list")

    @classmethod
    def from_config(cls, cfg):
        ins = cfg["insights"]
        return cls(
            api_key=os.environ.get(ins["api_key_env"]),
            model=ins["model"],
            timeout=ins["timeout_seconds"],
        )

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise InsightsError("no API key configured")
        resp = self._session.post(
            f"{self.BASE_URL}/{self.model}:generateContent",
            params={"key": self.api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {"responseMimeType": "application/json"},
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        try:
            parts = body["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise InsightsError(f"unexpected response shape: {e}") from e
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise InsightsError(f"unexpected response parts: {parts!r}")
        return "".join(str(p.get("text", "")) for p in parts)


def get_sustainability_insights(history, building_type: str, focus: str = "energy",
                                client=None, window: int = 24) -> List[Dict[str, Any]]:
    """Ask the AI service for recommendations, falling back to the static list.

    Argument errors (unknown archetype or focus, empty history) raise
    InvalidArgument. Everything that goes wrong with the service itself is
    logged and answered with ``fallback_recommendations``.
    """
    get_profile(building_type)
    if focus not in RECOMMENDATION_TYPES:
        raise InvalidArgument(f"unknown focus metric {focus!r}")
    stats = summarize(history, window)

    if client is None:
        logger.info("No AI client configured, using fallback recommendations")
        return fallback_recommendations(building_type)
    try:
        text = client.generate(build_prompt(building_type, stats, focus))
        return parse_recommendations(text)
    except (requests.RequestException, InsightsError, ValueError) as e:
        logger.error("AI insights failed for %s/%s: %s", building_type, focus, e)
        return fallback_recommendations(building_type)
    except Exception as e:
        logger.error("AI insights failed for %s/%s with unexpected error: %r", building_type, focus, e)
        return fallback_recommendations(building_type)


class InsightsFeed:
    """Holds the displayed recommendation list; the newest request wins.

    Each request takes a token from ``begin()``. ``publish`` ignores results
    whose token is older than the latest one handed out, so a slow response
    cannot replace the answer to a newer request.
    """

    def __init__(self, initial=None):
        self._lock = threading.Lock()
        self._latest = 0
        self._shown = 0
        self._recommendations = list(initial or [])

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def publish(self, token: int, recommendations) -> bool:
        with self._lock:
            if token != self._latest:
                logger.debug("Dropping stale insights (token %d, latest %d)", token, self._latest)
                return False
            self._shown = token
            self._recommendations = list(recommendations)
            return True

    @property
    def recommendations(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._recommendations)

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._shown != self._latest

    def refresh(self, history, building_type, focus="energy", client=None, window=24):
        token = self.begin()
        recs = get_sustainability_insights(history, building_type, focus, client=client, window=window)
        self.publish(token, recs)
        return token
