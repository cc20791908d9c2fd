"""
pipeline – Freemium Conversion Hunter: raw RavenStack tables -> fct_user_summary.

Dependency chain:
 accounts -> dim_users
 dim_users + subscriptions + feature_usage -> first_week_usage
 dim_users + support_tickets -> first_week_tickets
 subscriptions -> conversions
 all of the above -> user_summary (one row per account)

run_all() rebuilds the summary and both analysis reports from scratch on every
run. Nothing is published until the summary passes validation, and each output
file is swapped in atomically.
"""

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from . import config
from .conversion import detect_conversions
from .errors import ConfigurationError, SummaryValidationError
from .helpers import normalize_ids
from .normalize import build_dim_users
from .reports import feature_correlation, threshold_analysis
from .storage import load_inputs, save_csv
from .summary import assemble_user_summary
from .tickets import build_first_week_tickets
from .usage import build_first_week_usage
from .validation import ValidationLog, record, validate_user_summary, write_schema_metadata

log = logging.getLogger(__name__)


def run_stages(accounts: pd.DataFrame, subs: pd.DataFrame, usage: pd.DataFrame, tickets: pd.DataFrame,
               tracked_features: Dict[str, str] = None,
               window_days: int = config.WINDOW_DAYS,
               measure: str = config.USAGE_MEASURE,
               paid_tiers=config.PAID_TIERS,
               known_tiers=config.KNOWN_TIERS,
               trial_excludes_paying: bool = config.TRIAL_EXCLUDES_PAYING,
               default_industry: str = config.DEFAULT_INDUSTRY,
               rule: str = config.CONVERSION_RULE,
               dayfirst: bool = config.DAYFIRST,
               vlog=None) -> Dict[str, pd.DataFrame]:
    tracked_features = config.TRACKED_FEATURES if tracked_features is None else tracked_features

    dim_users = build_dim_users(accounts, default_industry=default_industry, dayfirst=dayfirst, vlog=vlog)

    first_week_usage = build_first_week_usage(usage, subs, dim_users, tracked_features=tracked_features,
                                              window_days=window_days, measure=measure,
                                              dayfirst=dayfirst, vlog=vlog)
    first_week_tickets = build_first_week_tickets(tickets, dim_users, window_days=window_days,
                                                  dayfirst=dayfirst, vlog=vlog)
    conversions = detect_conversions(subs, rule=rule, paid_tiers=paid_tiers, known_tiers=known_tiers,
                                     trial_excludes_paying=trial_excludes_paying,
                                     dayfirst=dayfirst, vlog=vlog)

    if not subs.empty:
        sub_accounts = normalize_ids(subs[["account_id"]].copy(), ["account_id"])["account_id"]
        orphan_subs = ~sub_accounts.isin(dim_users["account_id"])
        if orphan_subs.any():
            log.warning("subscriptions: %d rows reference unknown accounts", int(orphan_subs.sum()))
        record(vlog, "subscriptions", "orphan_subscriptions", int(orphan_subs.sum()))

    user_summary = assemble_user_summary(dim_users, first_week_usage, first_week_tickets, conversions,
                                         tracked_features=tracked_features, vlog=vlog)
    return {
        "dim_users": dim_users,
        "first_week_usage": first_week_usage,
        "first_week_tickets": first_week_tickets,
        "conversions": conversions,
        "user_summary": user_summary,
    }


def build_user_summary(accounts, subs, usage, tickets, **kwargs) -> pd.DataFrame:
    return run_stages(accounts, subs, usage, tickets, **kwargs)["user_summary"]


def run_all(data_in: Path = None, data_out: Path = None, run_id: str = None,
            threshold_column: str = config.THRESHOLD_FEATURE_COLUMN, **kwargs) -> pd.DataFrame:
    data_out = Path(data_out) if data_out is not None else config.DATA_OUT
    diag_dir = data_out / config.DIAG_DIRNAME
    tracked_features = kwargs.get("tracked_features")
    if tracked_features is None:
        tracked_features = config.TRACKED_FEATURES
    tracked_columns = list(dict.fromkeys(tracked_features.values()))
    if threshold_column not in tracked_columns:
        raise ConfigurationError(
            f"threshold column {threshold_column!r} is not a tracked feature column {tracked_columns}"
        )

    vlog = ValidationLog(run_id or config.new_run_id())
    log.info("Run %s started", vlog.run_id)

    tables = load_inputs(data_in)
    stages = run_stages(tables["accounts"], tables["subscriptions"], tables["feature_usage"],
                        tables["support_tickets"], vlog=vlog, **kwargs)
    summary = stages["user_summary"]

    count_cols = tracked_columns + ["first_week_tickets"]
    failures = validate_user_summary(summary, stages["dim_users"], count_cols)
    for f in failures:
        vlog.add("user_summary", "validation_failure", f)
    if failures:
        save_csv(vlog.to_frame(), diag_dir / "validation_summary.csv")
        raise SummaryValidationError(failures)

    correlation = feature_correlation(summary, tracked_features)
    thresholds = threshold_analysis(summary, column=threshold_column)

    save_csv(summary, data_out / config.SUMMARY_FILE)
    save_csv(correlation, data_out / config.FEATURE_CORRELATION_FILE)
    save_csv(thresholds, data_out / config.THRESHOLD_ANALYSIS_FILE)

    save_csv(vlog.to_frame(), diag_dir / "validation_summary.csv")
    write_schema_metadata({
        "fct_user_summary": summary,
        "query_1_feature_correlation": correlation,
        "query_2_threshold_analysis": thresholds,
    }, diag_dir / "schema.txt")

    log.info("Run %s finished. Outputs saved under %s", vlog.run_id, data_out)
    return summary
