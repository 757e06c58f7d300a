"""Configuration management for the credentials toolbox using pydantic-settings.

Handles MongoDB connection setup, aggregation scheduling and logging
configuration, and wires the core components around one shared database
handle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import MongoClient
from pymongo.database import Database
from rich.logging import RichHandler

from credtoolbox.sdk.aggregator import AppInfoLookup, StatsAggregator
from credtoolbox.sdk.ingestion import StatsIngestion
from credtoolbox.sdk.registry import TypeRegistry
from credtoolbox.sdk.store import CREDENTIAL_TYPES_COLLECTION, RAW_STATS_COLLECTION, ensure_indexes

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ToolboxConfig(BaseSettings):
    """Toolbox configuration using pydantic-settings BaseSettings."""

    model_config = SettingsConfigDict(
        env_prefix='CTB_',
        env_file='.env',
        env_file_encoding='utf-8',
        secrets_dir='/run/secrets'
    )

    mongo_url: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URL"
    )
    mongo_db_name: str = Field(
        default="credentials-toolbox",
        description="MongoDB database name"
    )
    stats_interval_seconds: int = Field(
        default=30,
        description="Delay between two statistics aggregation passes"
    )
    stats_window_days: int = Field(
        default=30,
        description="Rolling window of raw statistics used by aggregation"
    )
    search_limit: int = Field(
        default=30,
        description="Maximum number of credential types returned by a search"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    @field_validator('stats_interval_seconds', 'stats_window_days', 'search_limit')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate counters and durations are positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


@dataclass
class ToolboxServices:
    """Core components sharing one database handle."""
    registry: TypeRegistry
    ingestion: StatsIngestion
    aggregator: StatsAggregator


def validate_config(config: ToolboxConfig) -> None:
    """Validate configuration completeness for store-backed operations."""
    if not config.mongo_url.startswith(("mongodb://", "mongodb+srv://")):
        raise ValueError("Invalid MongoDB URL. Set CTB_MONGO_URL environment variable.")
    if not config.mongo_db_name:
        raise ValueError("Database name required. Set CTB_MONGO_DB_NAME environment variable.")


def create_database(config: ToolboxConfig) -> Database:
    """Open the process-wide database handle."""
    client: MongoClient = MongoClient(config.mongo_url)
    return client[config.mongo_db_name]


def build_services(db: Database, config: ToolboxConfig, app_info: AppInfoLookup | None = None) -> ToolboxServices:
    """Construct the core components around an open database.

    ``app_info`` is the application registry lookup (DID -> name and icon)
    provided by the identity layer; without it using apps are listed by DID
    only.
    """
    registry = TypeRegistry(db[CREDENTIAL_TYPES_COLLECTION])
    ingestion = StatsIngestion(db[RAW_STATS_COLLECTION])
    aggregator = StatsAggregator(
        db[RAW_STATS_COLLECTION], registry, window_days=config.stats_window_days, app_info=app_info
    )
    return ToolboxServices(registry=registry, ingestion=ingestion, aggregator=aggregator)


def create_services(config: ToolboxConfig, app_info: AppInfoLookup | None = None) -> ToolboxServices:
    """Connect to MongoDB, make sure indexes exist and build the components."""
    validate_config(config)
    db = create_database(config)
    ensure_indexes(db)
    return build_services(db, config, app_info)


def setup_logging(config: ToolboxConfig) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
