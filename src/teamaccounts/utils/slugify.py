"""URL slugs derived from display names.

Learn: Slugs are unique across the whole users table, so generate_slug
checks the database: "jane-doe" first, then "jane-doe-1", "jane-doe-2", ...
The check is a read, not a lock, so two concurrent sign-ups can still pick
the same slug, and the unique index rejects the loser.
"""

import re
import unicodedata
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

FALLBACK_SLUG = "user"


def slugify(text: Optional[str]) -> str:
    """Lower-case, hyphenate whitespace, drop anything that isn't a word char."""
    value = unicodedata.normalize("NFKD", str(text or ""))
    value = value.encode("ascii", "ignore").decode("ascii")
    value = value.lower().strip()
    value = re.sub(r"\s+", "-", value)
    value = value.replace("&", "-and-")
    value = re.sub(r"[^\w\-]+", "", value)
    value = re.sub(r"-{2,}", "-", value)
    return value


async def _slug_taken(db: AsyncSession, model, slug: str) -> bool:
    result = await db.execute(select(model.id).where(model.slug == slug).limit(1))
    return result.first() is not None


async def generate_slug(db: AsyncSession, model, name: Optional[str]) -> str:
    """Return a slug for `name` that no row of `model` uses yet."""
    base = slugify(name) or FALLBACK_SLUG
    if not await _slug_taken(db, model, base):
        return base

    count = 1
    while await _slug_taken(db, model, f"{base}-{count}"):
        count += 1
    return f"{base}-{count}"
