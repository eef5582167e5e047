"""Tests for flag vocabulary, message selection and batch limiting."""

import pytest
from imapclient import ANSWERED, DELETED, FLAGGED, SEEN

from tabellarium.flags import SYSTEM_FLAGS, resolve, resolve_all
from tabellarium.selection import SelectionFilter, batch_count, build_filter


class TestResolve:
    @pytest.mark.parametrize("name", sorted(SYSTEM_FLAGS))
    def test_system_flags(self, name):
        assert resolve(name) == SYSTEM_FLAGS[name]

    def test_known_values(self):
        assert resolve("seen") == SEEN
        assert resolve("deleted") == DELETED
        assert resolve("answered") == ANSWERED

    def test_unknown_name_is_custom_keyword(self):
        assert resolve("$Junk") == b"$Junk"

    def test_lookup_is_case_sensitive(self):
        assert resolve("Seen") == b"Seen"

    def test_resolve_all(self):
        assert resolve_all(["seen", "flagged", "Work"]) == frozenset({SEEN, FLAGGED, b"Work"})


class TestSelectionFilter:
    def test_unseen_only_criteria(self):
        assert build_filter(False).criteria == ["UNSEEN"]

    def test_include_seen_criteria(self):
        assert build_filter(True).criteria == ["OR", "SEEN", "UNSEEN"]

    def test_matches(self):
        assert build_filter(False).matches([]) is True
        assert build_filter(False).matches([SEEN]) is False
        assert build_filter(True).matches([SEEN]) is True

    def test_admits_rejects_deleted(self):
        assert SelectionFilter(include_seen=True).admits([DELETED]) is False
        assert SelectionFilter(include_seen=False).admits([DELETED]) is False

    def test_admits_rejects_seen_unless_included(self):
        assert SelectionFilter(include_seen=False).admits([SEEN, FLAGGED]) is False
        assert SelectionFilter(include_seen=True).admits([SEEN, FLAGGED]) is True

    def test_admits_plain_message(self):
        assert SelectionFilter().admits([FLAGGED]) is True


class TestBatchCount:
    def test_zero_means_unbounded(self):
        assert batch_count(120, 0) == 120

    def test_caps_at_batch_size(self):
        assert batch_count(120, 50) == 50

    def test_fewer_than_batch_size(self):
        assert batch_count(3, 50) == 3

    def test_empty(self):
        assert batch_count(0, 10) == 0
