# src/services/marketplace_api/__init__.py
"""
Marketplace API: HTTP-поверхность жизненного цикла матчей и платежей.
"""
