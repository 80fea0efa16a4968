"""
Options module - closed-form option formulas.

Provides:
- Bachelier (normal) model prices and Greeks
- Shifted Black'76 model prices and Greeks
"""

from .base_models import (
    bachelier_price,
    black_price,
    bachelier_greeks,
    black_greeks,
)

__all__ = [
    "bachelier_price",
    "black_price",
    "bachelier_greeks",
    "black_greeks",
]
