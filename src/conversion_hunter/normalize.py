import logging

import pandas as pd

from . import config
from .errors import InvalidSourceDataError
from .helpers import normalize_ids, parse_day, require_columns
from .validation import record

log = logging.getLogger(__name__)


def build_dim_users(accounts: pd.DataFrame, default_industry: str = config.DEFAULT_INDUSTRY,
                    dayfirst: bool = config.DAYFIRST, vlog=None) -> pd.DataFrame:
    """
    One row per account row: account_id, signup_date (day), industry.

    Null or blank industry becomes ``default_industry``. An unparseable
    signup_date cannot be recovered, so it rejects the run.
    """
    log.info("Building user dimension")
    require_columns(accounts, "accounts", ["account_id", "signup_date"])

    dim = accounts[["account_id", "signup_date"]].copy()
    dim = normalize_ids(dim, ["account_id"])
    dim["signup_date"] = parse_day(accounts["signup_date"], dayfirst=dayfirst)

    bad_signup = dim["signup_date"].isna()
    if bad_signup.any():
        raise InvalidSourceDataError("accounts", "signup_date", dim.loc[bad_signup, "account_id"].tolist())

    if "industry" in accounts.columns:
        industry = accounts["industry"].astype("object")
        blank = industry.isna() | (industry.astype(str).str.strip() == "")
        dim["industry"] = industry.where(~blank, default_industry).astype(str).str.strip()
    else:
        blank = pd.Series(True, index=accounts.index)
        dim["industry"] = default_industry

    dup = dim["account_id"].duplicated(keep=False)
    if dup.any():
        log.warning("accounts: %d rows share a duplicated account_id; all are kept", int(dup.sum()))

    record(vlog, "accounts", "rows_in", len(accounts))
    record(vlog, "accounts", "industry_defaulted", int(blank.sum()))
    record(vlog, "accounts", "duplicate_account_id_rows", int(dup.sum()))
    return dim.reset_index(drop=True)


def signup_lookup(dim_users: pd.DataFrame) -> pd.DataFrame:
    # one signup per account for the fact joins; duplicates keep the first row
    return dim_users[["account_id", "signup_date"]].drop_duplicates("account_id", keep="first")
