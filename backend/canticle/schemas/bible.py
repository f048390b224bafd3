"""
Canticle Backend — Bible Request/Response Schemas
===================================================

What:  Pydantic models for the /api/bible endpoints.
How:   Built from ORM rows with `from_attributes`; search and concordance
       results wrap a verse with its book name and (for search) the rank
       and highlighted snippet.
"""

import datetime
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class BookResponse(BaseModel):
    id: int = Field(description="Canonical book number (1-66)")
    name: str
    name_ru: str
    abbreviation: str
    testament: str = Field(description="old | new")
    chapters_count: int

    model_config = {"from_attributes": True}


class ChapterInfoResponse(BaseModel):
    chapter: int
    verse_count: int


class VerseResponse(BaseModel):
    id: int
    book_id: int
    chapter: int
    verse: int
    text: str

    model_config = {"from_attributes": True}


class PericopeResponse(BaseModel):
    """Section heading that starts at chapter:verse."""
    chapter: int
    verse: int
    heading: str

    model_config = {"from_attributes": True}


class DailyReadingResponse(BaseModel):
    id: uuid.UUID
    day_of_year: int = Field(description="1-366")
    date: Optional[datetime.date] = None
    verses: List[VerseResponse] = Field(description="Verses in reading order")


class VerseSearchResult(BaseModel):
    """
    One ranked search hit.

    `highlight` is a snippet of the verse with matched words wrapped in
    <mark>…</mark>; `rank` is the relevance score (higher is better).
    """
    verse: VerseResponse
    book_name: str = Field(description="Russian book name")
    highlight: Optional[str] = None
    rank: float = 0.0


class SymphonyResponse(BaseModel):
    """
    Concordance of one word.

    total_count counts every occurrence; `verses` lists each verse once,
    in canonical order, up to the requested limit.
    """
    word: str
    total_count: int
    verses: List[VerseSearchResult]


class VerseUpdateRequest(BaseModel):
    text: str = Field(min_length=1, description="New verse text")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Rejects whitespace-only text."""
        if not v.strip():
            raise ValueError("Verse text must not be blank")
        return v
