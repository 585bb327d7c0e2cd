"""Meeting notes data model.

Notes are stored and served with camelCase keys, so every model uses a
camelCase alias generator and is dumped ``by_alias``.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Priority = Literal["high", "medium", "low"]
PRIORITIES = ("high", "medium", "low")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class ActionItem(_CamelModel):
    description: str
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    priority: Priority = "medium"


class MeetingNotes(_CamelModel):
    meeting_id: str
    room_name: str
    timestamp: str
    summary: str
    action_items: list[ActionItem] = Field(default_factory=list)
    key_topics: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    transcript: Optional[str] = None
    duration: Optional[int] = None
