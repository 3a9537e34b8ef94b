"""Tests for memo version stamps."""

import pytest

from ynab_shared.models import VersionStamp
from ynab_shared.sync.stamp import (
    decode,
    encode,
    is_stamped,
    needs_update,
    stamped_origin_id,
)


class TestEncode:
    """Tests for encode."""

    def test_prefixes_memo_with_stamp(self):
        assert encode("t1", 5, "Groceries") == "t1@5 | Groceries"

    def test_empty_memo_keeps_separator(self):
        assert encode("t1", 5, "") == "t1@5 | "
        assert encode("t1", 5, None) == "t1@5 | "


class TestDecode:
    """Tests for decode."""

    def test_decodes_encoded_memo(self):
        assert decode(encode("abc-123", 42, "dinner")) == VersionStamp(
            origin_id="abc-123", knowledge=42
        )

    def test_memo_containing_separator_keeps_leading_stamp(self):
        stamp = decode(encode("t1", 7, "a | b @ c"))
        assert stamp == VersionStamp(origin_id="t1", knowledge=7)

    @pytest.mark.parametrize("memo", [None, "", "no stamp here", "| t1@5"])
    def test_missing_stamp(self, memo):
        assert decode(memo) is None

    def test_legacy_memo_without_knowledge(self):
        """The old "<id> @ <memo>" form has no integer knowledge."""
        assert decode("t1 @ coffee") is None

    def test_non_integer_knowledge(self):
        assert decode("t1@five | ") is None


class TestNeedsUpdate:
    """Staleness predicate."""

    @pytest.mark.parametrize("knowledge", [0, 5, 123456])
    def test_fresh_at_same_knowledge(self, knowledge):
        assert needs_update(knowledge, encode("t1", knowledge, "m")) is False

    @pytest.mark.parametrize("knowledge", [0, 5, 123456])
    def test_stale_when_knowledge_advances(self, knowledge):
        assert needs_update(knowledge + 1, encode("t1", knowledge, "m")) is True

    def test_older_knowledge_is_not_stale(self):
        assert needs_update(4, encode("t1", 5, "m")) is False

    @pytest.mark.parametrize("knowledge", [0, 5, 123456])
    def test_unstamped_memo_always_needs_update(self, knowledge):
        assert needs_update(knowledge, "no stamp here") is True
        assert needs_update(knowledge, None) is True


class TestStampedOriginId:
    """Exact origin id extraction."""

    def test_extracts_id_of_stamp(self):
        assert stamped_origin_id("t1@5 | memo") == "t1"

    def test_extracts_id_of_legacy_stamp(self):
        assert stamped_origin_id("t1 @ memo") == "t1"

    def test_does_not_match_by_substring(self):
        """An id that is a prefix of another must not collide."""
        assert stamped_origin_id("t10@5 | ") == "t10"
        assert stamped_origin_id("t10@5 | ") != "t1"

    @pytest.mark.parametrize("memo", [None, "", "plain memo", "@5 | "])
    def test_no_origin(self, memo):
        assert stamped_origin_id(memo) is None


def test_is_stamped():
    assert is_stamped("t1@5 | ")
    assert is_stamped("t1 @ memo")
    assert not is_stamped("plain")
    assert not is_stamped(None)
