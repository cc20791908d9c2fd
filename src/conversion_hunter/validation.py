"""
validation – Run diagnostics for the conversion pipeline.

 - ValidationLog collects (table, metric, value) rows stamped with the run id,
   the same long format every stage reports skipped/corrected row counts in.
 - validate_user_summary checks the published table's invariants; run_all
   refuses to publish when any check fails.
 - write_schema_metadata documents the output tables next to the data.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import pandas as pd

log = logging.getLogger(__name__)

NOW_TS = lambda: datetime.now(timezone.utc).isoformat()


class ValidationLog:
    def __init__(self, run_id: str):
        self.run_id = run_id
        self.rows = []

    def add(self, table, metric, value):
        self.rows.append({
            "etl_run_id": self.run_id,
            "timestamp": NOW_TS(),
            "table": table,
            "metric": metric,
            "value": value,
        })

    def get(self, table, metric, default=None):
        for row in reversed(self.rows):
            if row["table"] == table and row["metric"] == metric:
                return row["value"]
        return default

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=["etl_run_id", "timestamp", "table", "metric", "value"])


def record(vlog, table, metric, value):
    # stages accept vlog=None when called standalone
    if vlog is not None:
        vlog.add(table, metric, value)


# ------------------------------------------------
# Summary invariants
# ------------------------------------------------
def validate_user_summary(summary: pd.DataFrame, dim_users: pd.DataFrame, count_columns: List[str]) -> List[str]:
    failures = []

    if len(summary) != len(dim_users):
        failures.append(f"row count {len(summary)} != account count {len(dim_users)}")
    elif sorted(summary["user_id"].astype(str)) != sorted(dim_users["account_id"].astype(str)):
        failures.append("user_id set differs from account_id set")

    converted = summary["did_convert"] == 1
    has_days = summary["days_to_conversion"].notna()
    if (converted != has_days).any():
        failures.append(f"did_convert/days_to_conversion mismatch on {int((converted != has_days).sum())} rows")
    if (~summary["did_convert"].isin([0, 1])).any():
        failures.append("did_convert outside {0, 1}")
    if (summary["days_to_conversion"].dropna() < 0).any():
        failures.append("negative days_to_conversion")

    for col in count_columns:
        if col not in summary.columns:
            failures.append(f"missing column {col}")
            continue
        if summary[col].isna().any():
            failures.append(f"nulls in {col}")
        elif (summary[col] < 0).any():
            failures.append(f"negative values in {col}")

    if summary["industry"].isna().any():
        failures.append("nulls in industry")

    return failures


# -----------------------
# meta-data
# -----------------------
def write_schema_metadata(tables: Dict[str, pd.DataFrame], out_path: Path):
    """
    Writes a text file describing columns for each output table.
    Format similar to SQL schema documentation.
    """
    lines = []
    add = lines.append

    add("=== CONVERSION HUNTER OUTPUT SCHEMA ===\n")

    for name, df in tables.items():
        add("\n----------------------------------------")
        add(f"TABLE: {name}")
        add(f"Rows: {len(df)}")
        add(f"Columns: {len(df.columns)}")
        add("----------------------------------------\n")

        for col in df.columns:
            series = df[col]
            nulls = int(series.isna().sum())
            null_pct = round((nulls / len(series) * 100), 2) if len(series) > 0 else 0

            add(f" - {col}")
            add(f"      dtype: {series.dtype}")
            add(f"      nullable: {nulls} rows ({null_pct}%)")
            sample_val = series.dropna().iloc[0] if series.dropna().shape[0] > 0 else "NULL"
            add(f"      sample: {sample_val}\n")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w") as f:
        f.write("\n".join(lines))

    log.info("Wrote schema documentation to %s", out_path)
