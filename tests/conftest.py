import pandas as pd
import pytest

TRACKED = {
    "Logins": "first_week_logins",
    "Reports": "first_week_uses_reports",
    "Collab": "first_week_uses_collab",
    "Admin": "first_week_uses_admin",
}


def accounts_frame(rows):
    return pd.DataFrame(rows, columns=["account_id", "signup_date", "industry"])


def subs_frame(rows):
    return pd.DataFrame(rows, columns=["subscription_id", "account_id", "start_date", "plan_tier", "is_trial"])


def usage_frame(rows):
    return pd.DataFrame(rows, columns=["subscription_id", "feature_name", "usage_date", "usage_count"])


def tickets_frame(rows):
    return pd.DataFrame(rows, columns=["account_id", "submitted_at"])


@pytest.fixture
def tracked():
    return dict(TRACKED)


@pytest.fixture
def source_tables():
    """
    A001: free -> Pro on day 9, three Reports uses in week one.
    A002: Enterprise from day one, active in week one.
    A003: free -> Pro (day 10) -> free -> Pro (day 30).
    A004: no subscriptions at all.
    A005: Pro from day one, downgrades, re-upgrades on day 30.
    Plus one orphan usage event and one orphan ticket.
    """
    accounts = accounts_frame([
        ("A001", "2024-01-01", None),
        ("A002", "2024-02-01", "FinTech"),
        ("A003", "2024-01-01", "EdTech"),
        ("A004", "2024-01-15", "  "),
        ("A005", "2024-01-01", "HealthTech"),
    ])
    subs = subs_frame([
        ("S001", "A001", "2024-01-01", "Free", False),
        ("S002", "A001", "2024-01-10", "Pro", False),
        ("S010", "A002", "2024-02-01", "Enterprise", False),
        ("S020", "A003", "2024-01-01", "Free", False),
        ("S021", "A003", "2024-01-11", "Pro", False),
        ("S022", "A003", "2024-01-21", "Free", False),
        ("S023", "A003", "2024-01-31", "Pro", False),
        ("S040", "A005", "2024-01-01", "Pro", False),
        ("S041", "A005", "2024-01-21", "Free", False),
        ("S042", "A005", "2024-01-31", "Pro", False),
    ])
    usage = usage_frame([
        ("S001", "Reports", "2024-01-03 10:15:00", 3),
        ("S001", "Untracked", "2024-01-03 10:20:00", 5),
        ("S010", "Collab", "2024-02-02 09:00:00", 2),
        ("S010", "Logins", "2024-02-20 09:00:00", 7),
        ("S999", "Reports", "2024-01-02 09:00:00", 4),
    ])
    tickets = tickets_frame([
        ("A002", "2024-02-03 08:00:00"),
        ("A003", "2024-01-30 08:00:00"),
        ("A999", "2024-01-02 08:00:00"),
    ])
    return {"accounts": accounts, "subscriptions": subs, "feature_usage": usage, "support_tickets": tickets}
