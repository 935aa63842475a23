"""Tests for vote recording and tally decoration."""

import pytest
from sqlalchemy import text

from db import engine
from votes import decorate, record_vote


def _vote(user_id, section, item_id, vote):
    with engine.begin() as conn:
        record_vote(conn, user_id, section, item_id, vote)


def _decorate(section, items):
    with engine.connect() as conn:
        return decorate(conn, section, items)


class TestDecorate:
    def test_items_without_votes_get_zero_tally(self):
        items = [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}]

        result = _decorate("news", items)

        assert result == [
            {"id": "a", "title": "A", "votes": {"up": 0, "down": 0}},
            {"id": "b", "title": "B", "votes": {"up": 0, "down": 0}},
        ]

    def test_counts_by_item_and_preserves_order(self):
        _vote(1, "news", "b", "up")
        _vote(2, "news", "b", "up")
        _vote(3, "news", "b", "down")
        _vote(1, "news", "c", "down")

        result = _decorate("news", [{"id": "c"}, {"id": "a"}, {"id": "b"}])

        assert [r["id"] for r in result] == ["c", "a", "b"]
        assert [r["votes"] for r in result] == [
            {"up": 0, "down": 1},
            {"up": 0, "down": 0},
            {"up": 2, "down": 1},
        ]

    def test_sections_are_counted_separately(self):
        _vote(1, "prices", "bitcoin", "up")

        assert _decorate("news", [{"id": "bitcoin"}])[0]["votes"] == {"up": 0, "down": 0}
        assert _decorate("prices", [{"id": "bitcoin"}])[0]["votes"] == {"up": 1, "down": 0}

    def test_input_items_are_not_mutated(self):
        items = [{"id": "a"}]

        _decorate("meme", items)

        assert items == [{"id": "a"}]

    def test_empty_list(self):
        assert _decorate("news", []) == []


class TestRecordVote:
    def test_later_vote_replaces_earlier_one(self):
        _vote(7, "ai_insight", "ai-insight", "up")
        _vote(7, "ai_insight", "ai-insight", "down")

        result = _decorate("ai_insight", [{"id": "ai-insight"}])

        assert result[0]["votes"] == {"up": 0, "down": 1}
        with engine.connect() as conn:
            rows = conn.execute(text("SELECT COUNT(*) FROM user_votes")).scalar()
        assert rows == 1

    def test_repeated_vote_is_idempotent(self):
        for _ in range(3):
            _vote(7, "meme", "m", "up")

        assert _decorate("meme", [{"id": "m"}])[0]["votes"] == {"up": 1, "down": 0}

    @pytest.mark.parametrize(("section", "vote"), [("charts", "up"), ("news", "meh")])
    def test_rejects_unknown_values(self, section, vote):
        with pytest.raises(ValueError):
            _vote(1, section, "x", vote)
