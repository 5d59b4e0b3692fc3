"""Planning: scan, classify and bin-pack a source tree into a commit plan."""

from dripfeed.planning.classifier import CATEGORY_ORDER, FileCategory, categorize, classify
from dripfeed.planning.planner import build_plan, build_settings, describe_commit, render_preview
from dripfeed.planning.scanner import (
    SECURITY_PATTERNS,
    IgnoreRules,
    cluster_by_feature,
    load_ignore_rules,
    scan_directory,
)
from dripfeed.planning.types import DayPlan, Plan, PlannedCommit, commit_id

__all__ = [
    "CATEGORY_ORDER",
    "SECURITY_PATTERNS",
    "DayPlan",
    "FileCategory",
    "IgnoreRules",
    "Plan",
    "PlannedCommit",
    "build_plan",
    "build_settings",
    "categorize",
    "classify",
    "cluster_by_feature",
    "commit_id",
    "describe_commit",
    "load_ignore_rules",
    "render_preview",
    "scan_directory",
]
