"""arq worker settings module.

Import path for arq CLI: arq tasknest.workers.settings.WorkerSettings
"""

from __future__ import annotations

from tasknest.workers.jobs import WorkerSettings

__all__ = ["WorkerSettings"]
