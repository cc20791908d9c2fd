"""
reports – Read-only analysis queries over the user summary.

 - feature_correlation: average first-week usage per tracked feature for
   converted vs. non-converted users. The feature with the largest gap is the
   candidate "magic feature".
 - threshold_analysis: conversion rate per usage bucket (0, 1, 2, 3+) of one
   feature, to set first-week activation goals.
"""

import logging
from typing import Dict

import numpy as np
import pandas as pd

from . import config

log = logging.getLogger(__name__)

USER_GROUPS = {1: "Converted Users", 0: "Non-Converted Users"}


def feature_correlation(summary: pd.DataFrame, tracked_features: Dict[str, str] = None) -> pd.DataFrame:
    tracked_features = config.TRACKED_FEATURES if tracked_features is None else tracked_features
    cols = list(dict.fromkeys(tracked_features.values()))
    out_cols = ["user_group", "total_users"] + [f"avg_{c}" for c in cols] + ["avg_support_tickets"]
    if summary.empty:
        return pd.DataFrame(columns=out_cols)

    aggs = {"total_users": ("user_id", "count")}
    for c in cols:
        aggs[f"avg_{c}"] = (c, "mean")
    aggs["avg_support_tickets"] = ("first_week_tickets", "mean")

    out = summary.groupby("did_convert").agg(**aggs).reset_index()
    out["user_group"] = out["did_convert"].map(USER_GROUPS)
    avg_cols = [c for c in out_cols if c.startswith("avg_")]
    out[avg_cols] = out[avg_cols].round(2)
    return out[out_cols]


def usage_bucket(value, buckets=None, overflow: str = config.OVERFLOW_BUCKET) -> str:
    buckets = config.THRESHOLD_BUCKETS if buckets is None else buckets
    for upper, label in buckets:
        if value <= upper:
            return label
    return overflow


def threshold_analysis(summary: pd.DataFrame, column: str = config.THRESHOLD_FEATURE_COLUMN,
                       buckets=None, overflow: str = config.OVERFLOW_BUCKET) -> pd.DataFrame:
    bucket_col = column.replace("first_week_uses_", "") + "_usage_bucket"
    out_cols = [bucket_col, "total_users_in_bucket", "total_conversions", "conversion_rate_percent"]
    if summary.empty:
        return pd.DataFrame(columns=out_cols)
    if column not in summary.columns:
        raise KeyError(f"user summary has no column {column!r}")

    b = pd.DataFrame({
        bucket_col: summary[column].apply(lambda v: usage_bucket(v, buckets, overflow)),
        "did_convert": summary["did_convert"],
    })
    out = b.groupby(bucket_col).agg(
        total_users_in_bucket=("did_convert", "size"),
        total_conversions=("did_convert", "sum"),
        conversion_rate=("did_convert", "mean"),
    ).reset_index()
    out["conversion_rate_percent"] = np.round(out["conversion_rate"] * 100.0, 2)
    return out.sort_values(bucket_col).reset_index(drop=True)[out_cols]
