"""Pydantic schemas for teams."""

import uuid

from pydantic import BaseModel


class TeamRead(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    member_ids: list[uuid.UUID] = []

    model_config = {"from_attributes": True}
