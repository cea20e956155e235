"""
HTTP-сервисы приложения.

Сервисы:
- marketplace_api: матчи, платежи, уведомления (FastAPI)
"""

__all__: list[str] = []
