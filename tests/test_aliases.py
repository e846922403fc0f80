"""Tests for alias normalization and DM thread ids."""

import pytest

from aliases import make_thread_id, normalize_alias, other_alias


class TestNormalizeAlias:
    def test_lowercases_and_trims(self):
        assert normalize_alias("  Nova ") == "nova"

    def test_collapses_whitespace_runs(self):
        assert normalize_alias("Big \t  Wave") == "big-wave"

    def test_empty_and_none(self):
        assert normalize_alias("   ") == ""
        assert normalize_alias(None) == ""


class TestMakeThreadId:
    @pytest.mark.parametrize(
        "a, b",
        [("Ace", "Zed"), ("zed", "ACE"), ("Big Wave", "ace"), ("Nova", "Nova")],
    )
    def test_commutative(self, a, b):
        assert make_thread_id(a, b) == make_thread_id(b, a)

    def test_format(self):
        assert make_thread_id("Zed", "Ace") == "dm_ace_zed"

    def test_self_thread_repeats_label(self):
        assert make_thread_id("Nova", "nova") == "dm_nova_nova"

    def test_aliases_differing_only_in_case_collide(self):
        assert make_thread_id("ACE", "Bly") == make_thread_id("ace", "bly")


class TestOtherAlias:
    def test_returns_counterpart(self):
        assert other_alias(("Ace", "Zed"), "zed") == "Ace"
        assert other_alias(("Ace", "Zed"), " ACE ") == "Zed"

    def test_self_thread(self):
        assert other_alias(("Nova", "Nova"), "Nova") == "Nova"

    def test_stranger_falls_back_to_second_label(self):
        assert other_alias(("Ace", "Zed"), "Bly") == "Zed"
