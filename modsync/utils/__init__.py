"""General utilities for the entire bot."""

from modsync.utils.scheduling import Scheduler, create_task

__all__ = ["Scheduler", "create_task"]
