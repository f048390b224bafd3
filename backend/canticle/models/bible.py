"""
Canticle Backend — Bible SQLAlchemy Models
============================================

What:  ORM models for books, verses, the word index, section headings
       (pericopes) and the day-of-year reading plan.
Who:   Used by BibleService for reading, search, the concordance and the
       daily reading.

Table Design Rationale:
    - Book ids are the canonical book order (1 = Genesis … 66 = Revelation),
      so ORDER BY book_id, chapter, verse is the canonical verse order
    - search_text: the verse's normalized tokens, rewritten whenever `text`
      changes; ranked search pre-filters on it with LIKE
    - bible_word_index: one row per indexed word occurrence, keyed by
      (verse_id, position); the index on `word` serves the concordance
    - daily_readings: at most one plan entry per day of the year (1-366);
      its verses are listed in daily_reading_verses in reading order
"""

import enum
import uuid
import datetime
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Integer, SmallInteger, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canticle.database import Base


class Testament(str, enum.Enum):
    OLD = "old"
    NEW = "new"


class BibleBook(Base):
    """A book of the Bible with its chapter count."""

    __tablename__ = "bible_books"

    id: Mapped[int] = mapped_column(
        SmallInteger,
        primary_key=True,
        autoincrement=False,
        comment="Canonical book number (1-66)",
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    name_ru: Mapped[str] = mapped_column(String(64), nullable=False)
    abbreviation: Mapped[str] = mapped_column(String(16), nullable=False)
    testament: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        comment="old | new",
    )
    chapters_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BibleBook(id={self.id}, name='{self.name}')>"


class BibleVerse(Base):
    """
    One verse of text.

    `search_text` is derived from `text` and must only be written through
    BibleService, which regenerates it (and the verse's word index rows)
    in the same transaction as the text.
    """

    __tablename__ = "bible_verses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(
        SmallInteger,
        ForeignKey("bible_books.id", ondelete="CASCADE"),
        nullable=False,
    )
    chapter: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    verse: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    search_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Normalized tokens of `text`, used to pre-filter ranked search",
    )

    book: Mapped[BibleBook] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("book_id", "chapter", "verse", name="uq_bible_verses_reference"),
        Index("idx_bible_verses_chapter", "book_id", "chapter"),
    )

    @property
    def reference(self) -> str:
        return f"{self.book_id}:{self.chapter}:{self.verse}"

    def __repr__(self) -> str:
        return f"<BibleVerse(id={self.id}, ref='{self.reference}')>"


class BibleWordIndex(Base):
    """A single indexed word occurrence inside a verse."""

    __tablename__ = "bible_word_index"

    verse_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bible_verses.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(
        SmallInteger,
        primary_key=True,
        comment="1-based ordinal among the verse's indexed words",
    )
    word: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("idx_bible_word_index_word", "word"),
    )

    def __repr__(self) -> str:
        return f"<BibleWordIndex(word='{self.word}', verse_id={self.verse_id}, position={self.position})>"


class BiblePericope(Base):
    """A section heading that starts at (chapter, verse) of a book."""

    __tablename__ = "bible_pericopes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(
        SmallInteger,
        ForeignKey("bible_books.id", ondelete="CASCADE"),
        nullable=False,
    )
    chapter: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    verse: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    heading: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("idx_bible_pericopes_book", "book_id", "chapter", "verse"),
    )

    def __repr__(self) -> str:
        return f"<BiblePericope(book_id={self.book_id}, {self.chapter}:{self.verse}, '{self.heading}')>"


class DailyReading(Base):
    """The reading assigned to one day of the year."""

    __tablename__ = "daily_readings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    day_of_year: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        unique=True,
        comment="1-366",
    )
    date: Mapped[Optional[datetime.date]] = mapped_column(
        Date,
        nullable=True,
        comment="Calendar date the plan was written for, if any",
    )

    def __repr__(self) -> str:
        return f"<DailyReading(day_of_year={self.day_of_year})>"


class DailyReadingVerse(Base):
    __tablename__ = "daily_reading_verses"

    daily_reading_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("daily_readings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    verse_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bible_verses.id", ondelete="CASCADE"),
        nullable=False,
    )
