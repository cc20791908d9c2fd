import logging
from typing import Dict

import pandas as pd

from . import config
from .helpers import clamp_nonneg, normalize_ids, parse_day
from .normalize import signup_lookup
from .validation import record

log = logging.getLogger(__name__)


def in_window(day: pd.Series, signup: pd.Series, window_days: int) -> pd.Series:
    # inclusive on both ends, compared at day granularity
    return (day >= signup) & (day <= signup + pd.Timedelta(days=window_days))


def build_first_week_usage(usage: pd.DataFrame, subs: pd.DataFrame, dim_users: pd.DataFrame,
                           tracked_features: Dict[str, str] = None,
                           window_days: int = config.WINDOW_DAYS,
                           measure: str = config.USAGE_MEASURE,
                           dayfirst: bool = config.DAYFIRST,
                           vlog=None) -> pd.DataFrame:
    """
    Per-user first-week usage of the tracked features, one column per output name.

    Events resolve to their user through subscription -> account. Events that do
    not resolve, or whose usage_date does not parse, are skipped and counted.
    Users with no qualifying event are absent; the summary zero-fills them.
    """
    log.info("Building first-week usage")
    tracked_features = config.TRACKED_FEATURES if tracked_features is None else tracked_features
    if measure not in config.USAGE_MEASURES:
        raise ValueError(f"unknown usage measure {measure!r}, expected one of {config.USAGE_MEASURES}")

    out_cols = list(dict.fromkeys(tracked_features.values()))
    empty = pd.DataFrame(columns=["account_id"] + out_cols)
    if usage.empty:
        record(vlog, "feature_usage", "rows_in", 0)
        return empty

    events = usage[["subscription_id", "feature_name", "usage_date", "usage_count"]].copy()
    events = normalize_ids(events, ["subscription_id", "feature_name"])

    sub_map = normalize_ids(subs[["subscription_id", "account_id"]].copy(), ["subscription_id", "account_id"])
    sub_map = sub_map.dropna(subset=["subscription_id", "account_id"]).drop_duplicates("subscription_id", keep="first")
    users = signup_lookup(dim_users).dropna(subset=["account_id"])

    events = events.merge(sub_map, on="subscription_id", how="left")
    events = events.merge(users, on="account_id", how="left")

    # signup_date is never null on the spine, so a null here means the chain broke
    orphan = events["signup_date"].isna()
    if orphan.any():
        log.warning("feature_usage: skipping %d events that do not resolve to an account", int(orphan.sum()))
    events = events.loc[~orphan].copy()

    events["usage_day"] = parse_day(events["usage_date"], dayfirst=dayfirst)
    bad_date = events["usage_day"].isna()
    if bad_date.any():
        log.warning("feature_usage: skipping %d events with unparseable usage_date", int(bad_date.sum()))
    events = events.loc[~bad_date].copy()

    if measure == "usage_count":
        raw = pd.to_numeric(events["usage_count"], errors="coerce")
        fixed = raw.isna() | (raw < 0)
        record(vlog, "feature_usage", "usage_count_clamped", int(fixed.sum()))
        events["magnitude"] = clamp_nonneg(raw).fillna(0)
    else:
        events["magnitude"] = 1

    record(vlog, "feature_usage", "rows_in", len(usage))
    record(vlog, "feature_usage", "orphan_usage", int(orphan.sum()))
    record(vlog, "feature_usage", "invalid_usage_date", int(bad_date.sum()))

    events["column"] = events["feature_name"].map(tracked_features)
    events = events.loc[events["column"].notna()]
    events = events.loc[in_window(events["usage_day"], events["signup_date"], window_days)]
    record(vlog, "feature_usage", "first_week_tracked_events", len(events))

    if events.empty:
        return empty

    pivot = (
        events.groupby(["account_id", "column"])["magnitude"].sum()
        .unstack(fill_value=0)
        .reindex(columns=out_cols, fill_value=0)
        .astype("int64")
    )
    pivot.columns.name = None
    return pivot.reset_index()
