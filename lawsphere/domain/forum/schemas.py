"""Forum domain schemas - Pydantic models for request validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

# Fixed category catalogue (display name, Font Awesome icon)
CATEGORIES: list[tuple[str, str]] = [
    ("Housing & Tenant Issues", "fa-home"),
    ("Family Law", "fa-user-friends"),
    ("Employment Law", "fa-briefcase"),
    ("Small Claims", "fa-gavel"),
    ("Consumer Protection", "fa-shopping-cart"),
    ("Traffic & Driving", "fa-car"),
    ("Immigration", "fa-passport"),
    ("Criminal Defense", "fa-balance-scale"),
    ("Other", "fa-comments"),
]
CATEGORY_NAMES = frozenset(name for name, _ in CATEGORIES)


class TopicCreate(BaseModel):
    """Schema for creating a topic; emptiness is checked by the service"""

    title: Optional[str] = None
    category: Optional[str] = None
    content: Optional[str] = None
    anonymous: bool = False


class ReplyCreate(BaseModel):
    """Schema for replying to a topic or to another reply"""

    content: Optional[str] = None
    parentId: Optional[int] = None
    anonymous: bool = False

    @field_validator("parentId", mode="before")
    @classmethod
    def blank_parent_is_top_level(cls, v):
        if v == "":
            return None
        return v
