"""
FastAPI Dependencies.

Provides dependency injection for the workflow executor and its collaborators.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from sqlalchemy.ext.asyncio import AsyncEngine

from core.settings import AppSettings, get_app_settings
from core.validation import SchemaRegistry
from orchestration import (
    Collaborators,
    WorkflowExecutor,
    build_collaborators,
    build_executor,
    build_schema_registry,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_schema_registry: Optional[SchemaRegistry] = None
_executor: Optional[WorkflowExecutor] = None
_collaborators: Optional[Collaborators] = None
_engine: Optional[AsyncEngine] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_settings() -> AppSettings:
    return get_app_settings()


def get_schema_registry() -> SchemaRegistry:
    global _schema_registry
    if _schema_registry is None:
        _schema_registry = build_schema_registry(get_settings().workflow)
        logger.info(f"Loaded schema registry ({len(_schema_registry.names())} schemas)")
    return _schema_registry


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        from core.infrastructure.database.config import create_engine
        _engine = create_engine(get_settings().database)
    return _engine


def get_collaborators() -> Collaborators:
    global _collaborators

    if _collaborators is None:
        settings = get_settings()
        store = None

        if settings.workflow.persistence_backend == "sql":
            from core.infrastructure.database.config import get_session_factory
            from core.infrastructure.database.repositories import SqlAlchemyPersistenceStore

            store = SqlAlchemyPersistenceStore(get_session_factory(get_engine()))
            logger.info("Using SqlAlchemyPersistenceStore")
        else:
            logger.info("Using InMemoryPersistenceStore (persistence_backend=memory)")

        _collaborators = build_collaborators(settings, get_schema_registry(), store=store)

    return _collaborators


def get_executor() -> WorkflowExecutor:
    global _executor
    if _executor is None:
        _executor = build_executor(get_settings(), get_schema_registry())
        logger.info(f"Created WorkflowExecutor ({len(_executor.registry)} workflows)")
    return _executor


def engine_started() -> bool:
    return _engine is not None


# =============================================================================
# RESET (for testing)
# =============================================================================

def reset_dependencies():
    global _schema_registry, _executor, _collaborators, _engine

    _schema_registry = None
    _executor = None
    _collaborators = None
    _engine = None

    logger.info("Dependencies reset")
