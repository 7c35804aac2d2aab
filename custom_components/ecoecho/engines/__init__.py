"""Engine modules for EcoEcho integration.

Contains specialized computation engines:
- economy_engine: Achievement points ledger and levels
- gamification_engine: Achievement catalog, progress and unlocking
- statistics_engine: Local aggregates, reconciliation and namespace merges
"""

# Use relative imports within package to avoid mypy module resolution issues
from .economy_engine import EconomyEngine
from .gamification_engine import ACHIEVEMENTS, GamificationEngine
from .statistics_engine import StatisticsEngine

__all__ = [
    "ACHIEVEMENTS",
    "EconomyEngine",
    "GamificationEngine",
    "StatisticsEngine",
]
