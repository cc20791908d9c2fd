import logging
from typing import Dict, List

import pandas as pd

from . import config
from .helpers import clamp_nonneg
from .validation import record

log = logging.getLogger(__name__)

SPINE_COLUMNS = ["user_id", "industry", "signup_date", "did_convert", "days_to_conversion"]


def summary_columns(tracked_features: Dict[str, str] = None) -> List[str]:
    tracked_features = config.TRACKED_FEATURES if tracked_features is None else tracked_features
    return SPINE_COLUMNS + list(dict.fromkeys(tracked_features.values())) + ["first_week_tickets"]


def assemble_user_summary(dim_users: pd.DataFrame, first_week_usage: pd.DataFrame,
                          first_week_tickets: pd.DataFrame, conversions: pd.DataFrame,
                          tracked_features: Dict[str, str] = None,
                          vlog=None) -> pd.DataFrame:
    """
    Left-join every fact onto the user spine: one output row per account row.

    Usage and ticket counts are zero-filled, did_convert is 1 exactly when a
    conversion date exists, and days_to_conversion is the elapsed days from
    signup to conversion (NaN otherwise).
    """
    log.info("Assembling user summary")
    tracked_features = config.TRACKED_FEATURES if tracked_features is None else tracked_features
    count_cols = list(dict.fromkeys(tracked_features.values())) + ["first_week_tickets"]

    usage = first_week_usage.reindex(columns=["account_id"] + count_cols[:-1])
    tickets = first_week_tickets.reindex(columns=["account_id", "first_week_tickets"])
    conv = conversions.reindex(columns=["account_id", "first_conversion_date"])
    conv["first_conversion_date"] = pd.to_datetime(conv["first_conversion_date"])
    for fact in (usage, tickets, conv):
        fact["account_id"] = fact["account_id"].astype("object")

    s = dim_users.merge(usage, on="account_id", how="left", validate="m:1")
    s = s.merge(tickets, on="account_id", how="left", validate="m:1")
    s = s.merge(conv, on="account_id", how="left", validate="m:1")

    for c in count_cols:
        s[c] = pd.to_numeric(s[c], errors="coerce").fillna(0).astype("int64")

    s["did_convert"] = s["first_conversion_date"].notna().astype("int64")

    raw_days = (s["first_conversion_date"] - s["signup_date"]).dt.total_seconds() / 86400.0
    # a plan history that starts before signup would give a negative delay; clamp like days_to_adopt
    early = raw_days.notna() & (raw_days < 0)
    if early.any():
        log.warning("user summary: %d conversions dated before signup clamped to 0 days", int(early.sum()))
    s["days_to_conversion"] = clamp_nonneg(raw_days).astype("float64")

    dropped = len(conv) - int(conv["account_id"].isin(dim_users["account_id"]).sum())
    record(vlog, "user_summary", "conversions_for_unknown_accounts", dropped)
    record(vlog, "user_summary", "conversion_before_signup_clamped", int(early.sum()))

    s = s.rename(columns={"account_id": "user_id"})
    s = s.sort_values(["signup_date", "user_id"], kind="mergesort", na_position="last").reset_index(drop=True)
    out = s[summary_columns(tracked_features)]

    record(vlog, "user_summary", "rows_out", len(out))
    record(vlog, "user_summary", "converted_users", int(out["did_convert"].sum()))
    log.info("User summary: %d rows, %d converted", len(out), int(out["did_convert"].sum()))
    return out
