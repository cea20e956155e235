# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("AUTH_TOKEN_SECRET", "test_token_secret")
os.environ.setdefault("PROCESSOR_CALLBACK_SECRET", "test_processor_secret")

from tests.fakes import CARRIER_ID, SENDER_ID, InMemoryStore, build_marketplace  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "parcel_match_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "API_HOST": "127.0.0.1",
        "API_PORT": 9100,
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "parcel_match_test",
        "DB_USER": "postgres",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "DB_COMMAND_TIMEOUT": 30,
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_PORT": 5672,
        "RABBITMQ_EXCHANGE": "parcel.test",
        "AUTH_TOKEN_MAX_AGE": 3600,
        "DEFAULT_CURRENCY": "USD",
        "DEFAULT_PAYMENT_METHOD": "paypal",
        "SUPPORTED_CURRENCIES": ["USD", "EUR"],
        "NOTIFICATIONS_DEFAULT_LIMIT": 20,
        "NOTIFICATIONS_MAX_LIMIT": 100,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# IN-MEMORY МАРКЕТПЛЕЙС
# =============================================================================

@pytest.fixture
def store() -> InMemoryStore:
    """Хранилище с посылкой P1 (отправитель S) и поездкой R1 (перевозчик C)."""
    store = InMemoryStore()
    store.add_package("P1", SENDER_ID)
    store.add_ride("R1", CARRIER_ID)
    store.add_package("P2", SENDER_ID)
    store.add_ride("R2", CARRIER_ID)
    return store


@pytest.fixture
def marketplace(store: InMemoryStore) -> SimpleNamespace:
    """Реальные сервисы поверх in-memory хранилища."""
    return build_marketplace(store)
