from datetime import datetime, timezone

from sqlalchemy import bindparam, text

SECTIONS = ("news", "prices", "ai_insight", "meme")
VOTE_VALUES = ("up", "down")


def _empty_tally() -> dict:
    return {"up": 0, "down": 0}


def count_votes(conn, section: str, item_ids: list[str]) -> dict[str, dict]:
    """
    One grouped count for all item ids of a section.
    Returns {item_id: {"up": n, "down": m}} for items that have votes.
    """
    if not item_ids:
        return {}

    q = text("""
        SELECT item_id, vote, COUNT(*) AS total
        FROM user_votes
        WHERE section = :section AND item_id IN :ids
        GROUP BY item_id, vote
    """).bindparams(bindparam("ids", expanding=True))

    rows = conn.execute(q, {"section": section, "ids": list(item_ids)}).fetchall()

    lookup: dict[str, dict] = {}
    for item_id, vote, total in rows:
        if vote not in VOTE_VALUES:
            continue
        lookup.setdefault(item_id, _empty_tally())[vote] = int(total)
    return lookup


def decorate(conn, section: str, items: list[dict]) -> list[dict]:
    """
    Attach like/dislike counts to every item of a dashboard section.
    Order and item set are preserved; the input dicts are left untouched.
    """
    lookup = count_votes(conn, section, [item["id"] for item in items])
    return [
        {**item, "votes": dict(lookup.get(item["id"]) or _empty_tally())}
        for item in items
    ]


def record_vote(conn, user_id: int, section: str, item_id: str, vote: str):
    """
    Upsert keyed by (user, section, item): a later vote replaces the earlier one.
    """
    if section not in SECTIONS:
        raise ValueError(f"Invalid section: {section}")
    if vote not in VOTE_VALUES:
        raise ValueError(f"Invalid vote: {vote}")

    q = text("""
        INSERT INTO user_votes (user_id, section, item_id, vote, updated_at)
        VALUES (:user_id, :section, :item_id, :vote, :updated_at)
        ON CONFLICT (user_id, section, item_id)
        DO UPDATE SET vote = EXCLUDED.vote, updated_at = EXCLUDED.updated_at
    """)
    conn.execute(q, {
        "user_id": user_id,
        "section": section,
        "item_id": item_id,
        "vote": vote,
        "updated_at": datetime.now(timezone.utc),
    })
