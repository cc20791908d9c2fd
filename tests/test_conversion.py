import numpy as np
import pandas as pd
import pytest

from conversion_hunter.conversion import (
    detect_conversions,
    first_conversion_date,
    is_paying,
    parse_trial_flag,
)
from conversion_hunter.validation import ValidationLog

from conftest import subs_frame

D = pd.Timestamp


def conversion_map(conv):
    return dict(zip(conv["account_id"], conv["first_conversion_date"]))


class TestParseTrialFlag:

    @pytest.mark.parametrize("value,expected", [
        (True, True), (False, False), (np.bool_(False), False),
        (1, True), (0, False), (1.0, True),
        ("True", True), ("false", False), (" FALSE ", False), ("0", False), ("yes", True),
        (None, None), (np.nan, None), ("maybe", None), (2, None),
    ])
    def test_values(self, value, expected):
        assert parse_trial_flag(value) is expected


class TestIsPaying:

    def test_paid_tier_not_trial(self):
        assert is_paying("Pro", False)
        assert is_paying("Enterprise", "False")

    def test_trial_is_not_paying(self):
        assert not is_paying("Pro", True)
        assert not is_paying("Enterprise", "True")

    def test_free_and_basic_are_not_paying(self):
        assert not is_paying("Free", False)
        assert not is_paying("Basic", False)

    def test_tier_match_ignores_case_and_padding(self):
        assert is_paying(" pro ", False)

    def test_unknown_trial_flag_is_not_paying(self):
        assert not is_paying("Pro", None)
        assert not is_paying("Pro", "unknown")

    def test_missing_or_unrecognized_tier_is_not_paying(self):
        assert not is_paying(None, False)
        assert not is_paying("Platinum", False)

    def test_trials_can_be_allowed(self):
        assert is_paying("Pro", True, trial_excludes_paying=False)

    def test_custom_tier_set(self):
        assert is_paying("Gold", False, paid_tiers=("Gold",))
        assert not is_paying("Pro", False, paid_tiers=("Gold",))


class TestFirstConversionDate:

    def test_free_then_paid(self):
        assert first_conversion_date([(D("2024-01-01"), 0), (D("2024-01-10"), 1)]) == D("2024-01-10")

    def test_paid_from_day_one_never_converts(self):
        for rule in ("initial_non_paying", "first_transition"):
            assert first_conversion_date([(D("2024-01-01"), 1)], rule=rule) is None

    def test_single_free_record(self):
        assert first_conversion_date([(D("2024-01-01"), 0)]) is None

    def test_no_history(self):
        assert first_conversion_date([]) is None

    def test_first_transition_wins_after_churn(self):
        history = [
            (D("2024-01-01"), 0),
            (D("2024-01-11"), 1),
            (D("2024-01-21"), 0),
            (D("2024-01-31"), 1),
        ]
        for rule in ("initial_non_paying", "first_transition"):
            assert first_conversion_date(history, rule=rule) == D("2024-01-11")

    def test_reupgrade_after_initial_paid(self):
        history = [(D("2024-01-01"), 1), (D("2024-01-21"), 0), (D("2024-01-31"), 1)]
        assert first_conversion_date(history, rule="initial_non_paying") is None
        assert first_conversion_date(history, rule="first_transition") == D("2024-01-31")

    def test_consecutive_paid_records_count_once(self):
        history = [(D("2024-01-01"), 0), (D("2024-01-05"), 1), (D("2024-01-09"), 1)]
        assert first_conversion_date(history) == D("2024-01-05")


class TestDetectConversions:

    def test_upgrade_detected(self):
        conv = detect_conversions(subs_frame([
            ("S1", "A001", "2024-01-01", "Free", False),
            ("S2", "A001", "2024-01-10", "Pro", False),
        ]))
        assert conversion_map(conv) == {"A001": D("2024-01-10")}

    def test_paid_from_start_is_absent(self):
        conv = detect_conversions(subs_frame([("S1", "A002", "2024-02-01", "Enterprise", False)]))
        assert conv.empty
        assert list(conv.columns) == ["account_id", "first_conversion_date"]

    def test_trial_then_paid_converts(self):
        conv = detect_conversions(subs_frame([
            ("S1", "A1", "2024-01-01", "Pro", True),
            ("S2", "A1", "2024-01-15", "Pro", False),
        ]))
        assert conversion_map(conv) == {"A1": D("2024-01-15")}

    def test_same_day_changes_ordered_by_subscription_id(self):
        rows = [
            ("S2", "A1", "2024-01-05", "Pro", False),
            ("S1", "A1", "2024-01-05", "Free", False),
            ("S0", "A1", "2024-01-01", "Free", False),
            ("T1", "B1", "2024-01-01", "Pro", False),
            ("T2", "B1", "2024-01-01", "Free", False),
            ("T3", "B1", "2024-01-03", "Pro", False),
        ]
        conv = detect_conversions(subs_frame(rows))
        # B1's first record by id is Pro, so it started paying
        assert conversion_map(conv) == {"A1": D("2024-01-05")}

    def test_input_order_does_not_matter(self):
        rows = [
            ("S1", "A1", "2024-01-01", "Free", False),
            ("S2", "A1", "2024-01-03", "Pro", False),
            ("S3", "A1", "2024-01-03", "Free", False),
            ("S4", "A1", "2024-01-09", "Enterprise", False),
            ("S5", "A2", "2024-01-02", "Basic", False),
            ("S6", "A2", "2024-01-04", "Enterprise", False),
        ]
        forward = detect_conversions(subs_frame(rows))
        backward = detect_conversions(subs_frame(list(reversed(rows))))
        pd.testing.assert_frame_equal(forward, backward)
        assert conversion_map(forward) == {"A1": D("2024-01-03"), "A2": D("2024-01-04")}

    def test_first_transition_rule(self):
        subs = subs_frame([
            ("S1", "A5", "2024-01-01", "Pro", False),
            ("S2", "A5", "2024-01-21", "Free", False),
            ("S3", "A5", "2024-01-31", "Pro", False),
        ])
        assert detect_conversions(subs).empty
        conv = detect_conversions(subs, rule="first_transition")
        assert conversion_map(conv) == {"A5": D("2024-01-31")}

    def test_unrecognized_tier_counted_and_non_paying(self):
        vlog = ValidationLog("t")
        conv = detect_conversions(subs_frame([
            ("S1", "A1", "2024-01-01", "Free", False),
            ("S2", "A1", "2024-01-05", "Platinum", False),
        ]), vlog=vlog)
        assert conv.empty
        assert vlog.get("subscriptions", "unrecognized_plan_tier") == 1

    def test_unparseable_start_date_left_out(self):
        vlog = ValidationLog("t")
        conv = detect_conversions(subs_frame([
            ("S1", "A1", "garbage", "Pro", False),
            ("S2", "A1", "2024-01-01", "Free", False),
            ("S3", "A1", "2024-01-05", "Pro", False),
        ]), vlog=vlog)
        assert conversion_map(conv) == {"A1": D("2024-01-05")}
        assert vlog.get("subscriptions", "invalid_start_date") == 1

    def test_custom_taxonomy(self):
        conv = detect_conversions(subs_frame([
            ("S1", "A1", "2024-01-01", "Starter", False),
            ("S2", "A1", "2024-01-05", "Gold", True),
        ]), paid_tiers=("Gold",), known_tiers=("Starter", "Gold"), trial_excludes_paying=False)
        assert conversion_map(conv) == {"A1": D("2024-01-05")}

    def test_empty_history(self):
        conv = detect_conversions(subs_frame([]))
        assert conv.empty

    def test_unknown_rule(self):
        with pytest.raises(ValueError):
            detect_conversions(subs_frame([]), rule="ever_paid")
