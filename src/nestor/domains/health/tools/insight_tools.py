"""MCP tools for health insights and biometric feature extraction.

These tools run the deterministic pipeline inline and return JSON strings
using the camelCase field names of the result models.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from nestor.domains.health.domain_logic.feature_extractor import BiometricFeatureExtractor
    from nestor.domains.health.domain_logic.insights_engine import AdvancedInsightsEngine

from nestor.domains.health.domain_logic.feature_extractor import BiometricData
from nestor.domains.health.domain_logic.insight_models import HealthDataSeries, ValidationError
from nestor.domains.health.domain_logic.insights_engine import (
    GenerateInsightsOptions,
    InsightsGenerationError,
)

logger = logging.getLogger(__name__)


def _error(exc: Exception) -> str:
    return json.dumps({"status": "error", "message": str(exc)})


def register_insight_tools(
    mcp: FastMCP,
    engine: AdvancedInsightsEngine,
    extractor: BiometricFeatureExtractor,
) -> None:
    """Register insights and feature-extraction tools on the MCP server."""

    @mcp.tool
    async def generate_health_insights(
        ctx: Context,
        health_data: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> str:
        """Score sleep, activity, nutrition, stress, heart health, metabolism and immunity.

        Returns per-category scores with trends and correlations, anomalies,
        risk factors, daily/weekly/long-term recommendations, an overall score
        and a short summary.

        Args:
            health_data: Readings keyed by metric (heartRate, hrv, spo2,
                temperature, steps, sleep, activity), each a list of
                {value, timestamp}; optional assessments and nutrition logs.
            options: Optional timeFrame (day|week|month|year), include* flags
                and userProfile {age, sleepGoalHours, dailyStepGoal}.
        """
        start_time = time.monotonic()
        try:
            series = HealthDataSeries.from_dict(health_data)
            opts = GenerateInsightsOptions.from_dict(
                options, default_time_frame=engine.config.default_time_frame
            )
            result = engine.generate_insights(series, opts)
        except (ValidationError, InsightsGenerationError) as exc:
            logger.warning("generate_health_insights rejected: %s", exc)
            return _error(exc)

        payload = result.to_dict()
        payload["status"] = "ok"
        payload["duration_ms"] = round((time.monotonic() - start_time) * 1000, 1)
        return json.dumps(payload)

    @mcp.tool
    async def extract_biometric_features(
        ctx: Context,
        biometric_data: dict[str, Any],
    ) -> str:
        """Extract windowed features and statistics from raw biometric arrays.

        Args:
            biometric_data: {timestamps, heartRate, respiratoryRate,
                oxygenSaturation, temperature, steps, sleep: [{duration,
                quality, stages}]}; every array except timestamps is optional.
        """
        try:
            features = extractor.extract(BiometricData.from_dict(biometric_data))
        except ValidationError as exc:
            return _error(exc)

        payload = features.to_dict()
        payload["status"] = "ok"
        payload["window_size"] = extractor.window_size
        payload["step_size"] = extractor.step_size
        return json.dumps(payload)

    @mcp.tool
    async def biometric_feature_catalog(ctx: Context) -> str:
        """List the documented biometric features with their plausible ranges."""
        return json.dumps({
            "status": "ok",
            "features": [info.to_dict() for info in extractor.get_feature_info()],
        })
