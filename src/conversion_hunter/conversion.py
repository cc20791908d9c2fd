"""
conversion – First free-to-paid conversion per account.

A subscription record is *paying* when its plan tier is one of the paid tiers
and (unless trials are allowed to count) it is explicitly not a trial. Each
account's records are walked in (start_date, subscription_id) order; the start
date of the first paying record that follows a non-paying one is the
conversion date.

Rules:
 - "initial_non_paying" (default): accounts whose earliest record is already
   paying never convert, even if they later downgrade and re-upgrade.
 - "first_transition": no initial-state filter, so an account that starts
   paying, churns to free and upgrades again converts at the re-upgrade.
Under both rules a paying first record is not itself a conversion. For
"initial_non_paying" this is the same as reading the state before the first
record as non-paying and letting the initial-state filter drop the account.
"first_transition" differs from a lag-with-default-0 reading: there the
first record has no predecessor, so an account that pays from day one only
converts after a later non-paying -> paying step.

Classification policy for bad inputs:
 - plan tiers outside the paid set (including unrecognized ones) are non-paying;
   unrecognized tiers are counted.
 - a trial flag that does not parse as a boolean is non-paying when trials are
   excluded; such flags are counted.
 - records whose start_date does not parse, or without an account, are left
   out of the history and counted.
"""

import logging
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .helpers import normalize_ids, parse_day, require_columns
from .validation import record

log = logging.getLogger(__name__)

TRUE_TOKENS = {"true", "t", "yes", "y", "1"}
FALSE_TOKENS = {"false", "f", "no", "n", "0"}


def parse_trial_flag(value) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        if pd.isna(value):
            return None
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    s = str(value).strip().lower()
    if s in TRUE_TOKENS:
        return True
    if s in FALSE_TOKENS:
        return False
    return None


def normalize_tier(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    s = str(value).strip()
    return s or None


def is_paying(plan_tier, is_trial, paid_tiers=config.PAID_TIERS,
              trial_excludes_paying: bool = config.TRIAL_EXCLUDES_PAYING) -> bool:
    tier = normalize_tier(plan_tier)
    if tier is None:
        return False
    if tier.casefold() not in {t.casefold() for t in paid_tiers}:
        return False
    if not trial_excludes_paying:
        return True
    return parse_trial_flag(is_trial) is False


def classify_subscriptions(subs: pd.DataFrame, paid_tiers=config.PAID_TIERS,
                           known_tiers=config.KNOWN_TIERS,
                           trial_excludes_paying: bool = config.TRIAL_EXCLUDES_PAYING,
                           dayfirst: bool = config.DAYFIRST,
                           vlog=None) -> pd.DataFrame:
    """Subscription history with a day-level start_date and a 0/1 paying_state."""
    require_columns(subs, "subscriptions", ["subscription_id", "account_id", "start_date", "plan_tier", "is_trial"])
    cols = ["subscription_id", "account_id", "start_date", "plan_tier", "paying_state"]
    if subs.empty:
        record(vlog, "subscriptions", "rows_in", 0)
        return pd.DataFrame(columns=cols)

    hist = normalize_ids(subs[["subscription_id", "account_id", "plan_tier", "is_trial"]].copy(),
                         ["subscription_id", "account_id"])
    hist["start_date"] = parse_day(subs["start_date"], dayfirst=dayfirst)
    hist["plan_tier"] = hist["plan_tier"].map(normalize_tier)

    known = {t.casefold() for t in known_tiers} | {t.casefold() for t in paid_tiers}
    unknown_tier = hist["plan_tier"].map(lambda t: t is None or t.casefold() not in known)
    bad_trial = hist["is_trial"].map(parse_trial_flag).isna()
    if unknown_tier.any():
        log.warning("subscriptions: %d rows with unrecognized plan_tier classified as non-paying",
                    int(unknown_tier.sum()))

    hist["paying_state"] = [
        int(is_paying(tier, trial, paid_tiers, trial_excludes_paying))
        for tier, trial in zip(hist["plan_tier"], hist["is_trial"])
    ]

    no_account = hist["account_id"].isna()
    bad_start = hist["start_date"].isna()
    if bad_start.any():
        log.warning("subscriptions: excluding %d rows with unparseable start_date from plan history",
                    int(bad_start.sum()))

    record(vlog, "subscriptions", "rows_in", len(subs))
    record(vlog, "subscriptions", "unrecognized_plan_tier", int(unknown_tier.sum()))
    record(vlog, "subscriptions", "unparseable_is_trial", int(bad_trial.sum()))
    record(vlog, "subscriptions", "invalid_start_date", int(bad_start.sum()))
    record(vlog, "subscriptions", "missing_account_id", int(no_account.sum()))
    record(vlog, "subscriptions", "paying_rows", int(hist["paying_state"].sum()))

    return hist.loc[~(no_account | bad_start), cols].reset_index(drop=True)


def first_conversion_date(history: Iterable[Tuple[pd.Timestamp, int]],
                          rule: str = config.CONVERSION_RULE) -> Optional[pd.Timestamp]:
    """
    Scan one account's (start_date, paying_state) pairs, already in order, and
    return the start_date of the first non-paying -> paying step, or None.
    """
    initial_paying = None
    prev_paying = False
    for start_date, paying in history:
        paying = bool(paying)
        if initial_paying is None:
            # the first record has nothing to convert from
            initial_paying = paying
            if initial_paying and rule == "initial_non_paying":
                return None
        elif paying and not prev_paying:
            return start_date
        prev_paying = paying
    return None


def detect_conversions(subs: pd.DataFrame, rule: str = config.CONVERSION_RULE,
                       paid_tiers=config.PAID_TIERS, known_tiers=config.KNOWN_TIERS,
                       trial_excludes_paying: bool = config.TRIAL_EXCLUDES_PAYING,
                       dayfirst: bool = config.DAYFIRST,
                       vlog=None) -> pd.DataFrame:
    """Sparse account_id -> first_conversion_date; accounts that did not convert are absent."""
    log.info("Detecting conversions (rule=%s)", rule)
    if rule not in config.CONVERSION_RULES:
        raise ValueError(f"unknown conversion rule {rule!r}, expected one of {config.CONVERSION_RULES}")

    hist = classify_subscriptions(subs, paid_tiers=paid_tiers, known_tiers=known_tiers,
                                  trial_excludes_paying=trial_excludes_paying,
                                  dayfirst=dayfirst, vlog=vlog)

    # same-day plan changes are ordered by subscription_id, then by input position
    hist = hist.sort_values(["account_id", "start_date", "subscription_id"], kind="mergesort", na_position="last")

    rows = []
    for account_id, g in hist.groupby("account_id", sort=True):
        converted_on = first_conversion_date(zip(g["start_date"], g["paying_state"]), rule=rule)
        if converted_on is not None:
            rows.append({"account_id": account_id, "first_conversion_date": converted_on})

    conversions = pd.DataFrame(rows, columns=["account_id", "first_conversion_date"])
    conversions["first_conversion_date"] = pd.to_datetime(conversions["first_conversion_date"])
    record(vlog, "subscriptions", "accounts_with_history", int(hist["account_id"].nunique()))
    record(vlog, "subscriptions", "conversions_detected", len(conversions))
    log.info("Detected %d conversions across %d accounts", len(conversions), hist["account_id"].nunique())
    return conversions
