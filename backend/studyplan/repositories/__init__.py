"""Database repositories for study plan persistence."""

from .task_performance import TaskPerformanceRepository, normalize_plan_id, task_performance

__all__ = ["TaskPerformanceRepository", "normalize_plan_id", "task_performance"]
