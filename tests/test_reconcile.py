"""Tests for generation set reconciliation."""

from __future__ import annotations

import random

from assetwindow.sync.reconcile import ReconciliationResult, reconcile


def test_reconcile_slides_window_forward():
    result = reconcile({"a", "b"}, {"c", "d"}, {"d", "e"})

    assert result.upload_set == frozenset({"e"})
    assert result.delete_set == frozenset({"a", "b"})
    assert result.uploads == ["e"]
    assert result.deletes == ["a", "b"]


def test_reconcile_first_publish_uploads_everything():
    result = reconcile(set(), set(), {"x", "y", "z"})

    assert result.upload_set == frozenset({"x", "y", "z"})
    assert result.delete_set == frozenset()
    assert result.summary() == "3 to upload"


def test_reconcile_keeps_previous_file_that_candidate_reintroduces():
    # "a" came back in the new build, so it must stay in the store.
    result = reconcile({"a", "b"}, {"c"}, {"a", "c"})

    assert result.upload_set == frozenset({"a"})
    assert result.delete_set == frozenset({"b"})


def test_reconcile_identical_candidate_is_a_no_op():
    result = reconcile(set(), {"a", "b"}, {"a", "b"})

    assert not result.has_changes
    assert result.summary() == "no changes"
    assert result.to_dict() == {"upload": [], "delete": []}


def test_reconcile_all_empty():
    result = reconcile([], [], [])

    assert result == ReconciliationResult(frozenset(), frozenset())


def test_reconcile_accepts_any_iterable():
    result = reconcile(["a", "a"], iter(["b"]), ("c",))

    assert result.upload_set == frozenset({"c"})
    assert result.delete_set == frozenset({"a"})


def test_reconcile_properties_hold_for_random_generations():
    rng = random.Random(1729)
    universe = [f"chunk.{index:02x}.js" for index in range(24)]

    for _ in range(300):
        previous = {name for name in universe if rng.random() < 0.4}
        current = {name for name in universe if rng.random() < 0.4}
        candidate = {name for name in universe if rng.random() < 0.4}

        result = reconcile(previous, current, candidate)

        assert result.upload_set == frozenset(candidate - current)
        assert result.delete_set == frozenset(previous - (current | candidate))
        assert result.upload_set <= candidate
        assert not result.upload_set & current
        assert result.delete_set <= previous
        assert not result.delete_set & candidate
        assert not result.delete_set & current
        assert not result.upload_set & result.delete_set
        # After applying the run, everything in the new window is present.
        present = (previous | current | result.upload_set) - result.delete_set
        assert current | candidate <= present


def test_reconcile_is_idempotent_after_rollover():
    previous, current, candidate = {"a"}, {"b", "c"}, {"c", "d"}
    reconcile(previous, current, candidate)

    # Re-running with the advanced log and the same build changes nothing.
    again = reconcile(current, candidate, candidate)

    assert again.upload_set == frozenset()
    assert again.delete_set == frozenset({"b"})
    assert reconcile(current, candidate, candidate) == again
