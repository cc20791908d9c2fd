from typing import List

import pandas as pd

from .errors import SourceSchemaError


# FIX: Opt-in to future pandas behavior to silence downcasting warnings
pd.set_option("future.no_silent_downcasting", True)


# -----------------------------
# Normalize ID values
# -----------------------------
def normalize_id_val(v):
    if v is None or (not isinstance(v, str) and pd.isna(v)):
        return None
    s = str(v).strip()
    if s == "" or s.lower() in ("nan", "none", "null"):
        return None
    return s


def normalize_ids(df: pd.DataFrame, cols: List[str]) -> pd.DataFrame:
    # Convert id-like cols to string or None to avoid merge dtype mismatches
    for c in cols:
        if c in df.columns:
            df[c] = df[c].astype("object").map(normalize_id_val)
    return df


def require_columns(df: pd.DataFrame, table: str, cols: List[str]):
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SourceSchemaError(table, missing)


# -----------------------------
# Date utilities
# -----------------------------
def parse_day(series: pd.Series, dayfirst: bool = False) -> pd.Series:
    """
    Parse to naive UTC datetime64 truncated to the calendar day; unparseable values become NaT.

    Offset-aware values are converted to UTC before the day is taken. Naive
    values are read as UTC wall-clock time, so a column may mix both.
    """
    if series.empty:
        return pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")
    parsed = pd.to_datetime(series, errors="coerce", dayfirst=dayfirst, format="mixed", utc=True)
    parsed = parsed.dt.tz_localize(None)
    return parsed.dt.normalize()


def clamp_nonneg(series: pd.Series):
    s = pd.to_numeric(series, errors="coerce")
    return s.clip(lower=0)
