# API endpoints
from . import diagnose, feedback, stats, patterns, health

__all__ = ["diagnose", "feedback", "stats", "patterns", "health"]
