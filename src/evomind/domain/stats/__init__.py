# Domain Stats Package
from .models import ReviewStats, StatsWindow

__all__ = ["ReviewStats", "StatsWindow"]
