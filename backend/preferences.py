import json
from datetime import datetime, timezone

from sqlalchemy import text


def _ensure_json(value, default):
    """
    Some DB drivers return json columns as str; normalize.
    """
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value


def _as_list(value) -> list[str]:
    if not isinstance(value, list):
        value = [value]
    return [str(x) for x in value if x is not None]


def load_preferences(conn, user_id: int) -> dict | None:
    q = text("""
        SELECT crypto_assets, investor_type, content_types
        FROM user_preferences
        WHERE user_id = :id
        LIMIT 1
    """)
    row = conn.execute(q, {"id": user_id}).fetchone()
    if row is None:
        return None

    return {
        "cryptoAssets": _as_list(_ensure_json(row.crypto_assets, [])),
        "investorType": row.investor_type or "",
        "contentTypes": _as_list(_ensure_json(row.content_types, [])),
    }


def save_preferences(conn, user_id: int, crypto_assets: list[str], investor_type: str, content_types: list[str]):
    """
    Stores the onboarding choices, replacing earlier ones. Saving marks onboarding as completed.
    """
    q = text("""
        INSERT INTO user_preferences (user_id, crypto_assets, investor_type, content_types, updated_at)
        VALUES (:user_id, :crypto_assets, :investor_type, :content_types, :updated_at)
        ON CONFLICT (user_id)
        DO UPDATE SET crypto_assets = EXCLUDED.crypto_assets,
                      investor_type = EXCLUDED.investor_type,
                      content_types = EXCLUDED.content_types,
                      updated_at = EXCLUDED.updated_at
    """)
    conn.execute(q, {
        "user_id": user_id,
        "crypto_assets": json.dumps(list(crypto_assets or [])),
        "investor_type": investor_type or "",
        "content_types": json.dumps(list(content_types or [])),
        "updated_at": datetime.now(timezone.utc),
    })
