"""
config – Shared configuration for the freemium conversion pipeline.

Every stage reads its defaults from here and accepts keyword overrides, so a
different plan taxonomy or tracked-feature set is a configuration change.
Directories can be overridden with CONVERSION_HUNTER_DATA_IN / _DATA_OUT.
"""

import os
import uuid
from pathlib import Path

# -----------------------
# Paths
# -----------------------
PROJECT_ROOT = Path.cwd()
DATA_IN = Path(os.getenv("CONVERSION_HUNTER_DATA_IN", PROJECT_ROOT / "data" / "raw"))
DATA_OUT = Path(os.getenv("CONVERSION_HUNTER_DATA_OUT", PROJECT_ROOT / "data" / "warehouse"))
DIAG_DIRNAME = "_diagnostics"

# Raw input locations (relative to DATA_IN)
RAW_FILES = {
    "accounts": "ravenstack_accounts.csv",
    "subscriptions": "ravenstack_subscriptions.csv",
    "feature_usage": "ravenstack_feature_usage.csv",
    "support_tickets": "ravenstack_support_tickets.csv",
}

# Columns each source relation must carry
REQUIRED_COLUMNS = {
    "accounts": ["account_id", "signup_date", "industry"],
    "subscriptions": ["subscription_id", "account_id", "start_date", "plan_tier", "is_trial"],
    "feature_usage": ["subscription_id", "feature_name", "usage_date", "usage_count"],
    "support_tickets": ["account_id", "submitted_at"],
}

ID_COLUMNS = {
    "accounts": ["account_id"],
    "subscriptions": ["subscription_id", "account_id"],
    "feature_usage": ["subscription_id"],
    "support_tickets": ["account_id"],
}

# Outputs (relative to DATA_OUT)
SUMMARY_FILE = "fct_user_summary.csv"
FEATURE_CORRELATION_FILE = "query_1_feature_correlation.csv"
THRESHOLD_ANALYSIS_FILE = "query_2_threshold_analysis.csv"

# -----------------------
# Business rules
# -----------------------
# raw feature identifier -> summary column
TRACKED_FEATURES = {
    "feature_2": "first_week_logins",
    "feature_5": "first_week_uses_reports",
    "feature_12": "first_week_uses_collab",
    "feature_20": "first_week_uses_admin",
}

# "usage_count" sums the usage_count field, "events" counts rows
USAGE_MEASURE = "usage_count"
USAGE_MEASURES = ("usage_count", "events")

WINDOW_DAYS = 7

PAID_TIERS = ("Pro", "Enterprise")
KNOWN_TIERS = ("Free", "Basic", "Pro", "Enterprise")
TRIAL_EXCLUDES_PAYING = True

DEFAULT_INDUSTRY = "Unknown"

# "initial_non_paying": first 0 -> 1 transition, only for accounts whose
#   earliest subscription was non-paying
# "first_transition": first 0 -> 1 transition regardless of initial state
CONVERSION_RULE = "initial_non_paying"
CONVERSION_RULES = ("initial_non_paying", "first_transition")

# Raw RavenStack exports are ISO dates
DAYFIRST = False

# -----------------------
# Reporting
# -----------------------
THRESHOLD_FEATURE_COLUMN = "first_week_uses_collab"
# (upper bound inclusive, label); anything above the last bound is OVERFLOW_BUCKET
THRESHOLD_BUCKETS = [
    (0, "0_uses"),
    (1, "1_use"),
    (2, "2_uses"),
]
OVERFLOW_BUCKET = "3_or_more_uses"


def new_run_id() -> str:
    return str(uuid.uuid4())
