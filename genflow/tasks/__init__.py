"""Asynchronous job handling.

This module provides the cancellation token shared by a submission and the
poller that drives deferred generation jobs to completion.
"""

from genflow.tasks.cancellation import CancellationToken, OperationCancelled
from genflow.tasks.polling import JobPoller

__all__ = [
    "CancellationToken",
    "OperationCancelled",
    "JobPoller",
]
