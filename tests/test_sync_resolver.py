"""Unit tests for direction resolution.

Covers every row of the decision table, the tie tolerance boundary and
naive timestamp handling.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.currentprompt.sync.resolver import as_utc, resolve_direction
from src.currentprompt.sync.schemas import SyncAction

T = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
TOLERANCE = timedelta(seconds=5)


def _rec(at: datetime) -> SimpleNamespace:
    return SimpleNamespace(updated_at=at)


class TestDecisionTable:
    def test_primary_only_pushes(self):
        decision = resolve_direction("m", _rec(T), None, TOLERANCE)
        assert decision.action == SyncAction.PUSH
        assert decision.slug == "m"

    def test_mirror_only_pulls(self):
        decision = resolve_direction("m", None, _rec(T), TOLERANCE)
        assert decision.action == SyncAction.PULL

    def test_both_absent_is_none(self):
        decision = resolve_direction("m", None, None, TOLERANCE)
        assert decision.action == SyncAction.NONE

    def test_primary_newer_beyond_tolerance_pushes(self):
        decision = resolve_direction(
            "m", _rec(T + timedelta(seconds=6)), _rec(T), TOLERANCE
        )
        assert decision.action == SyncAction.PUSH
        assert "primary newer" in decision.reason

    def test_mirror_newer_beyond_tolerance_pulls(self):
        decision = resolve_direction(
            "m", _rec(T), _rec(T + timedelta(minutes=1)), TOLERANCE
        )
        assert decision.action == SyncAction.PULL
        assert "mirror newer" in decision.reason

    @pytest.mark.parametrize("skew", [0, 1, -1, 4.9, -4.9, 5, -5])
    def test_within_tolerance_is_none(self, skew):
        decision = resolve_direction(
            "m", _rec(T + timedelta(seconds=skew)), _rec(T), TOLERANCE
        )
        assert decision.action == SyncAction.NONE

    def test_zero_tolerance_any_skew_counts(self):
        decision = resolve_direction(
            "m", _rec(T + timedelta(milliseconds=1)), _rec(T), timedelta(0)
        )
        assert decision.action == SyncAction.PUSH

    def test_default_tolerance_is_five_seconds(self):
        assert resolve_direction("m", _rec(T + timedelta(seconds=5)), _rec(T)).action == (
            SyncAction.NONE
        )
        assert resolve_direction("m", _rec(T + timedelta(seconds=6)), _rec(T)).action == (
            SyncAction.PUSH
        )


class TestTimezones:
    def test_naive_timestamps_are_utc(self):
        naive = T.replace(tzinfo=None)
        decision = resolve_direction("m", _rec(naive), _rec(T), TOLERANCE)
        assert decision.action == SyncAction.NONE

    def test_offset_timestamps_compare_by_instant(self):
        plus_two = timezone(timedelta(hours=2))
        same_instant = T.astimezone(plus_two)
        decision = resolve_direction("m", _rec(same_instant), _rec(T), TOLERANCE)
        assert decision.action == SyncAction.NONE

    def test_as_utc(self):
        assert as_utc(T.replace(tzinfo=None)) == T
        assert as_utc(T).tzinfo == timezone.utc
