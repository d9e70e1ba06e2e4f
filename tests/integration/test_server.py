"""Integration tests for the Nestor MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from nestor.core.config.settings import Settings
from nestor.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    blocks = getattr(result, "content", result)
    return json.loads(blocks[0].text)


def _call(client: Client, tool: str, arguments: dict | None = None) -> dict:
    async def _go():
        async with client:
            return _payload(await client.call_tool(tool, arguments or {}))
    return _run(_go())


STATELESS_TOOLS = [
    "health_check",
    "generate_health_insights",
    "extract_biometric_features",
    "biometric_feature_catalog",
    "calculate_readiness",
    "readiness_insights",
    "detect_health_patterns",
]

STORAGE_TOOLS = [
    "record_assessment",
    "recent_assessments",
    "list_health_patterns",
]


@pytest.fixture
def client():
    """Server without persistence (no ENCRYPTION_KEY)."""
    return Client(create_app(Settings(encryption_key="")))


@pytest.fixture
def storage_client(assessment_repository):
    """Server backed by the in-memory assessment repository."""
    return Client(create_app(Settings(), repository_override=assessment_repository))


def _tool_names(client: Client) -> list[str]:
    async def _go():
        async with client:
            return [t.name for t in await client.list_tools()]
    return _run(_go())


def test_server_lists_stateless_tools(client):
    names = _tool_names(client)
    for expected in STATELESS_TOOLS:
        assert expected in names, f"Missing tool: {expected}"
    for hidden in STORAGE_TOOLS:
        assert hidden not in names


def test_storage_tools_registered_with_repository(storage_client):
    names = _tool_names(storage_client)
    for expected in STORAGE_TOOLS:
        assert expected in names, f"Missing tool: {expected}"


def test_health_check_returns_ok(client):
    status = _call(client, "health_check")
    assert status["status"] == "ok"
    assert status["recommendation_policy"] == "static"
    assert status["storage_enabled"] is False


class TestInsightTools:
    def test_generate_insights_for_empty_data(self, client):
        result = _call(client, "generate_health_insights", {"health_data": {}})
        assert result["status"] == "ok"
        assert result["overallScore"] == 63
        assert len(result["categories"]) == 7
        assert result["anomalies"] == []

    def test_generate_insights_rejects_bad_time_frame(self, client):
        result = _call(
            client,
            "generate_health_insights",
            {"health_data": {}, "options": {"timeFrame": "decade"}},
        )
        assert result["status"] == "error"
        assert "decade" in result["message"]

    def test_generate_insights_flags_heart_rate_spike(self, client):
        readings = [
            {"value": v, "timestamp": f"2026-03-0{i + 1}T07:00:00Z"}
            for i, v in enumerate([70, 70, 70, 70, 200])
        ]
        result = _call(client, "generate_health_insights", {"health_data": {"heartRate": readings}})
        assert result["status"] == "ok"
        assert [a["value"] for a in result["anomalies"]] == [200]

    def test_extract_features(self, client):
        result = _call(client, "extract_biometric_features", {
            "biometric_data": {
                "timestamps": [1, 2, 3, 4, 5],
                "heartRate": [60, 62, 64, 66, 68],
            },
        })
        assert result["status"] == "ok"
        assert "hr_mean" in result["featureNames"]
        assert result["statistics"]["mean"]["hr"] == 64

    def test_extract_features_requires_timestamps(self, client):
        result = _call(client, "extract_biometric_features", {
            "biometric_data": {"timestamps": [], "heartRate": [60]},
        })
        assert result["status"] == "error"
        assert result["message"] == "No timestamp data provided"

    def test_generate_insights_rejects_bad_profile(self, client):
        result = _call(client, "generate_health_insights", {
            "health_data": {},
            "options": {"userProfile": {"age": "thirty"}},
        })
        assert result["status"] == "error"
        assert "age" in result["message"]

    def test_extract_features_rejects_bad_sleep_record(self, client):
        result = _call(client, "extract_biometric_features", {
            "biometric_data": {"timestamps": [1], "sleep": [{"duration": "long"}]},
        })
        assert result["status"] == "error"
        assert "duration" in result["message"]

    def test_feature_catalog(self, client):
        result = _call(client, "biometric_feature_catalog")
        names = [f["name"] for f in result["features"]]
        assert "hr_mean" in names


class TestAssessmentTools:
    def test_calculate_readiness(self, client):
        result = _call(client, "calculate_readiness", {
            "selected_options": {"2": ["poorly_rested"], "4": ["no"], "12": ["stressed"]},
        })
        assert result["readinessScore"] == 83
        assert result["grade"] == "Good"
        assert len(result["contributingFactors"]) == 3

    def test_detect_patterns(self, client):
        assessments = [
            {"date": f"2026-03-0{d}", "selected_options": {"2": ["poorly_rested"]}}
            for d in (7, 8, 9)
        ]
        result = _call(client, "detect_health_patterns", {"assessments": assessments})
        assert result["assessments_analyzed"] == 3
        assert [p["id"] for p in result["patterns"]] == ["sleep-pattern-2026-03-09"]

    def test_detect_patterns_rejects_missing_date(self, client):
        result = _call(client, "detect_health_patterns", {"assessments": [{"selected_options": {}}]})
        assert result["status"] == "error"


class TestStorageTools:
    def test_record_rejects_malformed_date(self, storage_client, assessment_repository):
        result = _call(storage_client, "record_assessment", {
            "date": "2026-3-9",
            "selected_options": {"2": ["poorly_rested"]},
        })
        assert result["status"] == "error"
        assert assessment_repository.count_assessments("local") == 0

    def test_record_and_list(self, storage_client):
        async def _go():
            async with storage_client:
                for day in (7, 8, 9):
                    recorded = _payload(await storage_client.call_tool("record_assessment", {
                        "date": f"2026-03-0{day}",
                        "selected_options": {"2": ["poorly_rested"]},
                    }))
                    assert recorded["status"] == "recorded"
                    assert recorded["assessment"]["readinessScore"] == 95

                recent = _payload(await storage_client.call_tool("recent_assessments", {"limit": 2}))
                patterns = _payload(await storage_client.call_tool("list_health_patterns", {}))
                status = _payload(await storage_client.call_tool("health_check", {}))
                return recorded, recent, patterns, status

        recorded, recent, patterns, status = _run(_go())

        assert recorded["patterns_added"] == 1
        assert [a["date"] for a in recent["assessments"]] == ["2026-03-09", "2026-03-08"]
        assert [p["type"] for p in patterns["patterns"]] == ["Sleep Disruption"]
        assert status["storage_enabled"] is True
        assert status["assessments_stored"] == 3
