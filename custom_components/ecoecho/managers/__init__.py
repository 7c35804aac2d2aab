"""Manager modules for EcoEcho integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and handle cross-cutting concerns.
"""

from .base_manager import BaseManager
from .gamification_manager import GamificationManager
from .history_manager import HistoryManager
from .statistics_manager import PushResult, StatisticsManager
from .user_manager import UserManager

__all__ = [
    "BaseManager",
    "GamificationManager",
    "HistoryManager",
    "PushResult",
    "StatisticsManager",
    "UserManager",
]
