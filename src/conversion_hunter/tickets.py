import logging

import pandas as pd

from . import config
from .helpers import normalize_ids, parse_day
from .normalize import signup_lookup
from .usage import in_window
from .validation import record

log = logging.getLogger(__name__)


def build_first_week_tickets(tickets: pd.DataFrame, dim_users: pd.DataFrame,
                             window_days: int = config.WINDOW_DAYS,
                             dayfirst: bool = config.DAYFIRST,
                             vlog=None) -> pd.DataFrame:
    log.info("Building first-week support tickets")
    empty = pd.DataFrame(columns=["account_id", "first_week_tickets"])
    if tickets.empty:
        record(vlog, "support_tickets", "rows_in", 0)
        return empty

    t = normalize_ids(tickets[["account_id", "submitted_at"]].copy(), ["account_id"])
    t = t.merge(signup_lookup(dim_users).dropna(subset=["account_id"]), on="account_id", how="left")

    orphan = t["signup_date"].isna()
    if orphan.any():
        log.warning("support_tickets: skipping %d tickets for unknown accounts", int(orphan.sum()))
    t = t.loc[~orphan].copy()

    t["submitted_day"] = parse_day(t["submitted_at"], dayfirst=dayfirst)
    bad_date = t["submitted_day"].isna()
    if bad_date.any():
        log.warning("support_tickets: skipping %d tickets with unparseable submitted_at", int(bad_date.sum()))
    t = t.loc[~bad_date]

    record(vlog, "support_tickets", "rows_in", len(tickets))
    record(vlog, "support_tickets", "orphan_tickets", int(orphan.sum()))
    record(vlog, "support_tickets", "invalid_submitted_at", int(bad_date.sum()))

    t = t.loc[in_window(t["submitted_day"], t["signup_date"], window_days)]
    if t.empty:
        return empty

    agg = t.groupby("account_id").agg(first_week_tickets=("submitted_day", "size")).reset_index()
    agg["first_week_tickets"] = agg["first_week_tickets"].astype("int64")
    return agg
