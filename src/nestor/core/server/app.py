"""Nestor health insights MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from nestor.core.config.settings import Settings, get_settings
from nestor.core.storage.database import AssessmentDatabase, DatabaseError
from nestor.core.storage.encryption import EncryptionError, FieldEncryptor
from nestor.core.storage.repository import AssessmentRepository
from nestor.domains.health.domain_logic.feature_extractor import BiometricFeatureExtractor
from nestor.domains.health.domain_logic.insights_engine import AdvancedInsightsEngine, EngineConfig
from nestor.domains.health.domain_logic.recommendations import get_recommendation_policy
from nestor.domains.health.tools.assessment_tools import (
    register_assessment_storage_tools,
    register_assessment_tools,
)
from nestor.domains.health.tools.insight_tools import register_insight_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Nestor Health Insights"
SERVER_VERSION = "0.1.0"


def _build_repository(settings: Settings) -> AssessmentRepository | None:
    if not settings.encryption_key:
        logger.info(
            "No ENCRYPTION_KEY configured — running without persistence. "
            "Set ENCRYPTION_KEY to enable assessment history."
        )
        return None
    try:
        encryptor = FieldEncryptor(settings.encryption_key)
        database = AssessmentDatabase(settings.db_path)
        database.initialize()
    except (EncryptionError, DatabaseError) as exc:
        logger.error("Failed to initialize storage: %s", exc)
        logger.warning("Continuing without persistence — assessments will not be stored")
        return None
    logger.info(
        "Assessment store initialized: %s (schema v%d)",
        settings.db_path,
        database.get_schema_version(),
    )
    return AssessmentRepository(database, encryptor)


def create_app(
    settings: Settings | None = None,
    *,
    repository_override: AssessmentRepository | None = None,
    engine_override: AdvancedInsightsEngine | None = None,
) -> FastMCP:
    """Create and configure the Nestor MCP server.

    1. Creates the FastMCP server instance
    2. Builds the feature extractor and insights engine from settings
    3. Initializes the encrypted assessment store (when a key is configured)
    4. Registers all tools
    """
    settings = settings or get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Nestor health insights server. Scores health domains from wearable "
            "readings, computes daily readiness from check-ins, and detects "
            "recurring health patterns. All analysis is deterministic."
        ),
    )

    extractor = BiometricFeatureExtractor(
        window_size=settings.feature_window_size,
        step_size=settings.feature_step_size,
    )
    engine = engine_override or AdvancedInsightsEngine(
        EngineConfig(default_time_frame=settings.insights_time_frame),
        recommendation_policy=get_recommendation_policy(settings.recommendation_policy),
    )
    logger.info(
        "Insights engine ready (time_frame=%s, recommendations=%s)",
        engine.config.default_time_frame,
        engine.recommendation_policy.name,
    )

    repository = repository_override if repository_override is not None else _build_repository(settings)

    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "recommendation_policy": engine.recommendation_policy.name,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["assessments_stored"] = repository.count_assessments(settings.default_user_id)
        return status

    register_insight_tools(server, engine, extractor)
    register_assessment_tools(server)
    logger.info("Insight and assessment tools registered")

    if repository is not None:
        register_assessment_storage_tools(
            server,
            repository,
            user_id=settings.default_user_id,
            lookback_days=settings.pattern_lookback_days,
        )
        logger.info("Assessment storage tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
