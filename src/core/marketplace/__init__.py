# src/core/marketplace/__init__.py
"""
Посылки и поездки (только чтение).
"""

from src.core.marketplace.repository import MarketplaceRepository

__all__ = ["MarketplaceRepository"]
