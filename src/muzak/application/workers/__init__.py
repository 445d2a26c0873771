"""Background workers."""

from muzak.application.workers.background_tasks import BackgroundTaskRunner

__all__ = ["BackgroundTaskRunner"]
