"""Merge strategy families.

Each family module exposes factories that validate keyword options and
return a strategy with ``name`` and ``merge(results)``.
"""

from src.merge.strategies import array, categorical, consensus, continuous, custom, objects

__all__ = ["array", "categorical", "consensus", "continuous", "custom", "objects"]
