"""
Canticle Backend — Song SQLAlchemy Models
===========================================

What:  ORM models for songbooks and their editions, songs, song categories
       and tags.
Who:   Used by SongService for CRUD, listing, search and transposition.

Table Design Rationale:
    - UUID primary keys, generated in Python so the same DDL runs on
      PostgreSQL and on the SQLite test database
    - content: ChordPro source, the only field a client writes; content_plain,
      first_line, has_chords and search_text are derived from it (and from
      the title/author) by SongService in the same flush
    - views_count / favorites_count: popularity counters read by search
      ordering; retrieval increments views_count
    - song_categories: (song_id, category) rows over a fixed category set
    - song_tags + song_tag_assignments: free-form tags with a usage counter
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canticle.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SongCategory(str, enum.Enum):
    """Fixed set of song categories, each with a Russian display name."""

    PRAISE = "praise"
    WORSHIP = "worship"
    PRAYER = "prayer"
    REPENTANCE = "repentance"
    THANKSGIVING = "thanksgiving"
    CHRISTMAS = "christmas"
    EASTER = "easter"
    TRINITY = "trinity"
    COMMUNION = "communion"
    BAPTISM = "baptism"
    WEDDING = "wedding"
    FUNERAL = "funeral"
    EVANGELISM = "evangelism"
    YOUTH = "youth"
    CHILDREN = "children"

    @property
    def name_ru(self) -> str:
        return _CATEGORY_NAMES_RU[self]


_CATEGORY_NAMES_RU = {
    SongCategory.PRAISE: "Хвала",
    SongCategory.WORSHIP: "Поклонение",
    SongCategory.PRAYER: "Молитва",
    SongCategory.REPENTANCE: "Покаяние",
    SongCategory.THANKSGIVING: "Благодарение",
    SongCategory.CHRISTMAS: "Рождество",
    SongCategory.EASTER: "Пасха",
    SongCategory.TRINITY: "Троица",
    SongCategory.COMMUNION: "Вечеря Господня",
    SongCategory.BAPTISM: "Крещение",
    SongCategory.WEDDING: "Бракосочетание",
    SongCategory.FUNERAL: "Похороны",
    SongCategory.EVANGELISM: "Евангелизация",
    SongCategory.YOUTH: "Молодёжные",
    SongCategory.CHILDREN: "Детские",
}


song_tag_assignments = Table(
    "song_tag_assignments",
    Base.metadata,
    Column("song_id", Uuid, ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("song_tags.id", ondelete="CASCADE"), primary_key=True),
)


class Songbook(Base):
    """A published collection of songs ("Песнь Возрождения", "Гимны надежды", ...)."""

    __tablename__ = "songbooks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Short stable code, e.g. 'pv3300'",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_ru: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Songbook(code='{self.code}')>"


class SongbookEdition(Base):
    """A printed edition of a songbook (year, publisher, song count)."""

    __tablename__ = "songbook_editions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    songbook_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("songbooks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    edition_name: Mapped[str] = mapped_column(String(255), nullable=False)
    year_published: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    songs_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    publisher: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SongbookEdition(songbook_id={self.songbook_id}, '{self.edition_name}')>"


class SongTag(Base):
    __tablename__ = "song_tags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name_ru: Mapped[str] = mapped_column(String(64), nullable=False)
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of songs carrying this tag",
    )

    def __repr__(self) -> str:
        return f"<SongTag(name='{self.name}', usage_count={self.usage_count})>"


class SongCategoryLink(Base):
    """Assignment of a song to one SongCategory."""

    __tablename__ = "song_categories"

    song_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("songs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category: Mapped[str] = mapped_column(String(32), primary_key=True)

    __table_args__ = (
        Index("idx_song_categories_category", "category"),
    )


class Song(Base):
    """
    A song with its ChordPro content and derived search fields.

    Query Patterns:
        - List/filter: songbook_id, category (join), tag (exists), original_key
        - Search: LIKE pre-filter on search_text, ranking in Python
        - Popular in category: ORDER BY views_count DESC
    """

    __tablename__ = "songs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    songbook_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("songbooks.id", ondelete="SET NULL"),
        nullable=True,
    )
    number: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Number of the song inside its songbook",
    )

    # ── Descriptive fields ────────────────────────────────────────────────
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    title_alt: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    author_lyrics: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    author_music: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    translator: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    year_written: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    copyright: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    original_key: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    tempo: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    time_signature: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    # ── Content and derived fields ────────────────────────────────────────
    content: Mapped[str] = mapped_column(Text, nullable=False, comment="ChordPro source")
    content_plain: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Content with every [chord] removed",
    )
    first_line: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    has_chords: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    search_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Normalized tokens of title, first line, plain content and lyricist",
    )

    # ── Popularity ────────────────────────────────────────────────────────
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    favorites_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # ── Relationships ─────────────────────────────────────────────────────
    # Eagerly loaded: responses are serialized outside the async context
    songbook: Mapped[Optional[Songbook]] = relationship(lazy="selectin")
    category_links: Mapped[List[SongCategoryLink]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    tags: Mapped[List[SongTag]] = relationship(
        secondary=song_tag_assignments,
        lazy="selectin",
        order_by=SongTag.name,
    )

    __table_args__ = (
        Index("idx_songs_songbook_number", "songbook_id", "number"),
        Index("idx_songs_views", "views_count"),
    )

    @property
    def categories(self) -> List[SongCategory]:
        return sorted(
            (SongCategory(link.category) for link in self.category_links),
            key=lambda category: category.value,
        )

    @property
    def songbook_code(self) -> Optional[str]:
        return self.songbook.code if self.songbook is not None else None

    def __repr__(self) -> str:
        return f"<Song(id={self.id}, title='{self.title}')>"
