# src/core/__init__.py
"""
Доменный слой (Core Domain).
Жизненный цикл матчей и платежей, уведомления, политика авторизации.
"""
