"""backlogsync - keep a prioritized backlog document and GitHub issues in sync.

High-level public API:

from backlogsync import load_config, parse_backlog, build_queue

cfg = load_config('backlog_sync.config.yaml')
items = parse_backlog(cfg.source_file.read_text())

The CLI (``backlogsync generate`` / ``backlogsync queue``) delegates to this
library so the same pipeline can be embedded in other automation.
"""

from __future__ import annotations

from .config import SyncConfig, load_config
from .models import BacklogItem, QueuePlan, ResolvedItem, ScheduledItem, TrackerIssue
from .parser import canonical_title, parse_backlog
from .reconcile import generate_issues, validate_labels
from .scheduler import SchedulerRules, build_queue

__version__ = "0.1.0"

__all__ = [
    "SyncConfig",
    "load_config",
    "BacklogItem",
    "TrackerIssue",
    "ResolvedItem",
    "ScheduledItem",
    "QueuePlan",
    "parse_backlog",
    "canonical_title",
    "build_queue",
    "SchedulerRules",
    "generate_issues",
    "validate_labels",
    "__version__",
]
