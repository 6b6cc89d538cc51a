from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from bibliopulse.core.normalize import as_list

SEARCH_TYPES = ("author", "title", "isbn", "general")
READING_STATUSES = ("to-read", "reading", "completed")
FEATURE_STATUSES = ("completed", "in-progress", "planned")


@dataclass(frozen=True)
class Review:
    content: str
    date: str  # ISO date


@dataclass(frozen=True)
class Book:
    """
    Canonical book record shared by every catalog adapter.

    List-valued fields accept a bare string and are coerced to a list,
    so downstream code never has to branch on the shape.
    """

    id: str
    title: str
    author: List[str] = field(default_factory=list)
    cover: Optional[str] = None
    language: List[str] = field(default_factory=list)
    isbn: Optional[str] = None
    publishers: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    description: str = ""
    number_of_pages: Optional[int] = None
    publish_date: str = ""
    format: str = ""
    series: Optional[str] = None

    status: Optional[str] = None  # "to-read" | "reading" | "completed"
    rating: int = 0
    review: Optional[Review] = None
    completion_date: Optional[str] = None
    start_reading_date: Optional[str] = None
    purchased: bool = False
    amazon_url: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("author", "language", "publishers", "subjects"):
            object.__setattr__(self, name, as_list(getattr(self, name)))
        object.__setattr__(self, "id", str(self.id or ""))
        object.__setattr__(self, "title", (self.title or "").strip())
        if self.status is not None and self.status not in READING_STATUSES:
            raise ValueError(f"unknown reading status: {self.status!r}")
        if not 0 <= int(self.rating or 0) <= 5:
            raise ValueError(f"rating must be between 0 and 5, got {self.rating!r}")
        if isinstance(self.review, dict):
            object.__setattr__(self, "review", Review(**self.review))

    @property
    def author_text(self) -> str:
        return " ".join(self.author)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Book":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        known.setdefault("id", "")
        known.setdefault("title", "")
        return cls(**known)


@dataclass(frozen=True)
class SearchOutcome:
    books: List[Book]
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RoadmapFeature:
    name: str
    description: str
    status: str  # "completed" | "in-progress" | "planned"
    quarter: Optional[str] = None
    technical_details: Optional[str] = None
    is_proposal: bool = False
    proposed_by: Optional[str] = None
    proposal_date: Optional[str] = None
    completion_date: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in FEATURE_STATUSES:
            raise ValueError(f"unknown feature status: {self.status!r}")
