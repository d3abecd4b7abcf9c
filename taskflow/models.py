import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, NaiveDatetime, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}


# Table records


class Category(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str
    color: str
    created_at: NaiveDatetime = Field(default_factory=datetime.now)


class Task(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: str
    description: Optional[str] = None
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = Field(default=None, foreign_key="category.id", index=True)
    due_date: Optional[NaiveDatetime] = None
    position: int = Field(default=0, index=True)
    created_at: NaiveDatetime = Field(default_factory=datetime.now)
    updated_at: NaiveDatetime = Field(default_factory=datetime.now)


# API schemas (camelCase on the wire)


def _non_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _hex_color(value: str) -> str:
    if not HEX_COLOR.match(value):
        raise ValueError("must be a hex color like #3b82f6")
    return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        return None
    return value


def _local_naive(value: datetime) -> datetime:
    # Due dates are kept as local wall-clock time without tzinfo.
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]
HexColor = Annotated[str, AfterValidator(_hex_color)]
OptionalText = Annotated[Optional[str], AfterValidator(_blank_to_none)]
LocalDateTime = Annotated[datetime, AfterValidator(_local_naive)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryCreate(ApiModel):
    name: NonBlankStr
    color: HexColor


class CategoryUpdate(ApiModel):
    name: Optional[NonBlankStr] = None
    color: Optional[HexColor] = None

    @field_validator("name", "color")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class CategoryRead(ApiModel):
    id: str
    name: str
    color: str
    created_at: datetime


class TaskCreate(ApiModel):
    title: NonBlankStr
    description: OptionalText = None
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = None
    due_date: Optional[LocalDateTime] = None
    position: Optional[int] = None


class TaskUpdate(ApiModel):
    """Partial update: only the fields present in the request are applied.

    ``description``, ``category_id`` and ``due_date`` may be cleared with an
    explicit null; the other fields may be omitted but not nulled.
    """

    title: Optional[NonBlankStr] = None
    description: OptionalText = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    category_id: Optional[str] = None
    due_date: Optional[LocalDateTime] = None
    position: Optional[int] = None

    @field_validator("title", "completed", "priority", "position")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskWithCategory(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = None
    due_date: Optional[datetime] = None
    position: int = 0
    created_at: datetime
    updated_at: datetime
    category: Optional[CategoryRead] = None


class ReorderRequest(ApiModel):
    task_ids: list[str]


class TaskStats(ApiModel):
    total: int = 0
    completed: int = 0
    progress: int = 0
    filters: dict[str, int] = {}
    categories: dict[str, int] = {}
