"""Shared test fixtures for the mdportable test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mdportable.audit import InMemoryAuditLog
from mdportable.config import MdPortableConfig
from mdportable.converter.md_to_portable import MarkdownToPortableConverter
from mdportable.registry import FieldRegistry, default_registry
from mdportable.store.memory import InMemoryContentStore
from mdportable.sync import SyncEngine

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> MdPortableConfig:
    """Default test configuration with a dummy project and token."""
    return MdPortableConfig(project_id="testproj", token="sk_test_token_1234", sync_timeout_seconds=1.0)


@pytest.fixture
def converter(config: MdPortableConfig) -> MarkdownToPortableConverter:
    """Converter using the default test config."""
    return MarkdownToPortableConverter(config)


@pytest.fixture
def registry() -> FieldRegistry:
    return default_registry()


@pytest.fixture
def audit() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def engine(
    registry: FieldRegistry,
    store: InMemoryContentStore,
    audit: InMemoryAuditLog,
    config: MdPortableConfig,
) -> SyncEngine:
    """Sync engine over the in-memory store with a frozen clock."""
    return SyncEngine(registry, store, audit, config, clock=lambda: FIXED_NOW)
