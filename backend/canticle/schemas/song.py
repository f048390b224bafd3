"""
Canticle Backend — Song Request/Response Schemas
==================================================

What:  Pydantic models for the /api/songs endpoints.
How:   Responses are built from ORM rows (`from_attributes`); the derived
       fields (content_plain, search_text) are never accepted from clients.

Design Decision:
    Summaries (lists, search hits) omit the ChordPro content; the full
    SongResponse carries it. A songbook listing can hold thousands of songs.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from canticle.models.song import SongCategory

MAX_SEMITONES = 12


class SongSortBy(str, enum.Enum):
    TITLE = "title"
    NUMBER = "number"
    VIEWS_DESC = "views_desc"
    FAVORITES_DESC = "favorites_desc"
    RECENTLY_ADDED = "recently_added"
    HAS_CHORDS_FIRST = "has_chords_first"
    NO_CHORDS_FIRST = "no_chords_first"


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SongbookResponse(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    name_ru: str
    description: Optional[str] = None
    is_public: bool = True
    songs_count: int = Field(default=0, description="Songs in this songbook")
    songs_with_chords_count: int = Field(default=0, description="Songs with at least one chord")

    model_config = {"from_attributes": True}


class SongbookEditionResponse(BaseModel):
    id: uuid.UUID
    songbook_id: uuid.UUID
    edition_name: str
    year_published: Optional[int] = None
    songs_count: Optional[int] = None
    publisher: Optional[str] = None
    isbn: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class TagResponse(BaseModel):
    id: uuid.UUID
    name: str
    name_ru: str
    usage_count: int

    model_config = {"from_attributes": True}


class CategoryInfo(BaseModel):
    category: SongCategory
    name_ru: str


class SongSummary(BaseModel):
    """Compact song representation for lists and search hits."""
    id: uuid.UUID
    songbook_id: Optional[uuid.UUID] = None
    songbook_code: Optional[str] = None
    number: Optional[int] = None
    title: str
    author_lyrics: Optional[str] = None
    first_line: str
    original_key: Optional[str] = None
    has_chords: bool
    categories: List[SongCategory] = Field(default_factory=list)
    views_count: int = 0
    favorites_count: int = 0

    model_config = {"from_attributes": True}


class SongResponse(SongSummary):
    """Full song, including the ChordPro content."""
    title_alt: Optional[str] = None
    author_music: Optional[str] = None
    translator: Optional[str] = None
    year_written: Optional[int] = None
    copyright: Optional[str] = None
    tempo: Optional[int] = None
    time_signature: Optional[str] = None
    content: str = Field(description="ChordPro source")
    tags: List[TagResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TransposedSongResponse(SongResponse):
    """A song whose content and original_key were shifted by `semitones`."""
    semitones: int


class SongSearchResult(BaseModel):
    song: SongSummary
    songbook_name: Optional[str] = None
    highlight: Optional[str] = Field(
        default=None,
        description="Snippet of the plain lyrics with matches wrapped in <mark>…</mark>",
    )
    rank: float = 0.0


class TransposeResponse(BaseModel):
    content: str
    semitones: int
    key: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SongCreateRequest(BaseModel):
    songbook_id: Optional[uuid.UUID] = None
    number: Optional[int] = Field(default=None, ge=1)
    title: str = Field(min_length=1, max_length=500)
    title_alt: Optional[str] = Field(default=None, max_length=500)
    author_lyrics: Optional[str] = Field(default=None, max_length=255)
    author_music: Optional[str] = Field(default=None, max_length=255)
    translator: Optional[str] = Field(default=None, max_length=255)
    year_written: Optional[int] = Field(default=None, ge=0, le=9999)
    copyright: Optional[str] = Field(default=None, max_length=500)
    original_key: Optional[str] = Field(default=None, max_length=8)
    tempo: Optional[int] = Field(default=None, ge=1, le=400)
    time_signature: Optional[str] = Field(default=None, max_length=8)
    content: str = Field(min_length=1, description="ChordPro source")
    categories: List[SongCategory] = Field(default_factory=list)
    tag_ids: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Trims the title and rejects whitespace-only titles."""
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v


class SongUpdateRequest(BaseModel):
    """
    Partial update. Omitted fields are left unchanged; an explicit null
    clears an optional column (title and content ignore null). `categories`
    and `tag_ids`, when given, replace the current assignments.
    """
    songbook_id: Optional[uuid.UUID] = None
    number: Optional[int] = Field(default=None, ge=1)
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    title_alt: Optional[str] = Field(default=None, max_length=500)
    author_lyrics: Optional[str] = Field(default=None, max_length=255)
    author_music: Optional[str] = Field(default=None, max_length=255)
    translator: Optional[str] = Field(default=None, max_length=255)
    year_written: Optional[int] = Field(default=None, ge=0, le=9999)
    copyright: Optional[str] = Field(default=None, max_length=500)
    original_key: Optional[str] = Field(default=None, max_length=8)
    tempo: Optional[int] = Field(default=None, ge=1, le=400)
    time_signature: Optional[str] = Field(default=None, max_length=8)
    content: Optional[str] = Field(default=None, min_length=1)
    categories: Optional[List[SongCategory]] = None
    tag_ids: Optional[List[uuid.UUID]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v


class TransposeRequest(BaseModel):
    """Stateless transposition of arbitrary ChordPro content."""
    content: str = Field(description="ChordPro source")
    semitones: int = Field(ge=-MAX_SEMITONES, le=MAX_SEMITONES)
    key: Optional[str] = Field(default=None, max_length=8, description="Key label to transpose along")
    prefer_flats: bool = Field(default=False, description="Spell the transposed key with flats")
