"""
Canticle Backend — Bible Service
==================================

What:  Business logic for reading the Bible, ranked verse search, the word
       concordance ("symphony"), the daily reading plan and keeping the
       derived search data in step with verse text.
Who:   Called by the /api/bible route handlers and by data-loading code.

Search flow (GET /api/bible/search):
    ┌───────────┐    ┌──────────────────────┐    ┌──────────────┐
    │  Parse    │───▶│  LIKE pre-filter on  │───▶│  Rank, order │
    │  query    │    │  search_text (SQL)   │    │  & highlight │
    └───────────┘    └──────────────────────┘    └──────────────┘

    The pre-filter keeps only verses whose search_text contains, for every
    AND-group, all stems of at least one clause. It is a superset of the
    real matches; the ranker applies the exact rules.

Derived data:
    A verse's `search_text` and its bible_word_index rows are rewritten in
    the same flush as its text (`add_verse`, `update_verse_text`), so a
    committed verse never disagrees with its search document.
"""

import datetime
import logging
from typing import List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from canticle.config import settings
from canticle.exceptions import CanticleError, DatabaseError, NotFoundError, ValidationError
from canticle.models.bible import (
    BibleBook,
    BiblePericope,
    BibleVerse,
    BibleWordIndex,
    DailyReading,
    DailyReadingVerse,
    Testament,
)
from canticle.schemas.bible import (
    BookResponse,
    ChapterInfoResponse,
    DailyReadingResponse,
    PericopeResponse,
    SymphonyResponse,
    VerseResponse,
    VerseSearchResult,
)
from canticle.search import (
    VERSE_WEIGHTS,
    SearchDocument,
    SearchRanker,
    build_search_text,
    clamp_limit,
    index_word,
    index_words,
    parse_query,
)

logger = logging.getLogger(__name__)


def _verse_document(verse: BibleVerse) -> SearchDocument:
    return SearchDocument(
        ref=verse,
        fields={"text": verse.text},
        snippet_source=verse.text,
    )


def _search_result(verse: BibleVerse, highlight: Optional[str] = None, rank: float = 0.0) -> VerseSearchResult:
    return VerseSearchResult(
        verse=VerseResponse.model_validate(verse),
        book_name=verse.book.name_ru,
        highlight=highlight,
        rank=rank,
    )


class BibleService:
    """
    Business logic layer for Bible operations.

    Error Handling Strategy:
        Lookups that find nothing raise NotFoundError. Our own exceptions
        propagate as-is; anything else coming out of the database layer is
        logged and wrapped in DatabaseError (generic message, no internals).
    """

    def __init__(self):
        self.ranker = SearchRanker(
            weights=VERSE_WEIGHTS,
            max_limit=settings.search_max_limit,
            headline_max_words=settings.verse_headline_max_words,
            headline_min_words=settings.headline_min_words,
        )

    # ── Reading ───────────────────────────────────────────────────────────

    async def list_books(
        self,
        db: AsyncSession,
        testament: Optional[Testament] = None,
    ) -> List[BookResponse]:
        """All books in canonical order, optionally for one testament."""
        try:
            query = select(BibleBook).order_by(BibleBook.id)
            if testament is not None:
                query = query.where(BibleBook.testament == testament.value)
            result = await db.execute(query)
            return [BookResponse.model_validate(book) for book in result.scalars().all()]
        except Exception as e:
            logger.error("Database error listing books: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve books. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def get_book(self, db: AsyncSession, book_id: int) -> BookResponse:
        return BookResponse.model_validate(await self._require_book(db, book_id))

    async def get_chapters_info(self, db: AsyncSession, book_id: int) -> List[ChapterInfoResponse]:
        """Verse count of every chapter of a book that has verses."""
        await self._require_book(db, book_id)
        try:
            result = await db.execute(
                select(BibleVerse.chapter, func.count(BibleVerse.id))
                .where(BibleVerse.book_id == book_id)
                .group_by(BibleVerse.chapter)
                .order_by(BibleVerse.chapter)
            )
            return [
                ChapterInfoResponse(chapter=chapter, verse_count=count)
                for chapter, count in result.all()
            ]
        except Exception as e:
            logger.error("Database error reading chapters of book %s: %s", book_id, str(e))
            raise DatabaseError(
                message="Could not retrieve chapters. Please try again.",
                context={"book_id": book_id},
            ) from e

    async def get_chapter(
        self,
        db: AsyncSession,
        book_id: int,
        chapter: int,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[VerseResponse]:
        """
        Verses of one chapter in order, optionally restricted to [start, end].

        Raises:
            NotFoundError: Unknown book, or no verses in the requested range
        """
        await self._require_book(db, book_id)
        try:
            query = (
                select(BibleVerse)
                .where(BibleVerse.book_id == book_id, BibleVerse.chapter == chapter)
                .order_by(BibleVerse.verse)
            )
            if start is not None:
                query = query.where(BibleVerse.verse >= start)
            if end is not None:
                query = query.where(BibleVerse.verse <= end)
            result = await db.execute(query)
            verses = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error reading chapter %s:%s: %s", book_id, chapter, str(e))
            raise DatabaseError(
                message="Could not retrieve the chapter. Please try again.",
                context={"book_id": book_id, "chapter": chapter},
            ) from e

        if not verses:
            raise NotFoundError(resource="chapter", resource_id=f"{book_id}:{chapter}")
        return [VerseResponse.model_validate(verse) for verse in verses]

    async def get_verse(self, db: AsyncSession, book_id: int, chapter: int, verse: int) -> VerseResponse:
        try:
            result = await db.execute(
                select(BibleVerse).where(
                    BibleVerse.book_id == book_id,
                    BibleVerse.chapter == chapter,
                    BibleVerse.verse == verse,
                )
            )
            row = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error reading verse %s:%s:%s: %s", book_id, chapter, verse, str(e))
            raise DatabaseError(
                message="Could not retrieve the verse. Please try again.",
                context={"book_id": book_id, "chapter": chapter, "verse": verse},
            ) from e

        if row is None:
            raise NotFoundError(resource="verse", resource_id=f"{book_id}:{chapter}:{verse}")
        return VerseResponse.model_validate(row)

    async def get_pericopes(self, db: AsyncSession, book_id: int) -> List[PericopeResponse]:
        """Section headings of a book in reading order (possibly none)."""
        await self._require_book(db, book_id)
        try:
            result = await db.execute(
                select(BiblePericope)
                .where(BiblePericope.book_id == book_id)
                .order_by(BiblePericope.chapter, BiblePericope.verse)
            )
            return [PericopeResponse.model_validate(row) for row in result.scalars().all()]
        except Exception as e:
            logger.error("Database error reading pericopes of book %s: %s", book_id, str(e))
            raise DatabaseError(
                message="Could not retrieve section headings. Please try again.",
                context={"book_id": book_id},
            ) from e

    # ── Reading plan ──────────────────────────────────────────────────────

    async def get_daily_reading(self, db: AsyncSession, day: int) -> DailyReadingResponse:
        """
        The plan entry for a day of the year with its verses in plan order.

        Raises:
            NotFoundError: No reading is planned for that day
        """
        try:
            reading = (
                await db.execute(select(DailyReading).where(DailyReading.day_of_year == day))
            ).scalar_one_or_none()
            verses = []
            if reading is not None:
                result = await db.execute(
                    select(BibleVerse)
                    .join(DailyReadingVerse, DailyReadingVerse.verse_id == BibleVerse.id)
                    .where(DailyReadingVerse.daily_reading_id == reading.id)
                    .order_by(DailyReadingVerse.position)
                )
                verses = result.scalars().all()
        except Exception as e:
            logger.error("Database error reading plan day %s: %s", day, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve the daily reading. Please try again.",
                context={"day": day},
            ) from e

        if reading is None:
            raise NotFoundError(resource="daily reading", resource_id=str(day))
        return DailyReadingResponse(
            id=reading.id,
            day_of_year=reading.day_of_year,
            date=reading.date,
            verses=[VerseResponse.model_validate(verse) for verse in verses],
        )

    async def get_today_reading(
        self,
        db: AsyncSession,
        today: Optional[datetime.date] = None,
    ) -> DailyReadingResponse:
        """Reading for today's day of the year (UTC unless `today` is given)."""
        today = today or datetime.datetime.now(datetime.timezone.utc).date()
        return await self.get_daily_reading(db, today.timetuple().tm_yday)

    # ── Writing ───────────────────────────────────────────────────────────

    async def add_verse(
        self,
        db: AsyncSession,
        book_id: int,
        chapter: int,
        verse: int,
        text: str,
    ) -> VerseResponse:
        """Insert a verse together with its search text and word index rows."""
        await self._require_book(db, book_id)
        if not text.strip():
            raise ValidationError(message="Verse text must not be blank", field="text")

        try:
            row = BibleVerse(
                book_id=book_id,
                chapter=chapter,
                verse=verse,
                text=text,
                search_text=build_search_text(text),
            )
            db.add(row)
            await db.flush()
            db.add_all(self._word_rows(row.id, text))
            await db.flush()
            logger.info("Verse %s added with %d indexed words", row.reference, len(index_words(text)))
            return VerseResponse.model_validate(row)
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error adding verse %s:%s:%s: %s", book_id, chapter, verse, str(e))
            raise DatabaseError(
                message="Could not save the verse. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def update_verse_text(self, db: AsyncSession, verse_id: int, text: str) -> VerseResponse:
        """
        Replace a verse's text and regenerate its search text and word index.

        All three writes share one flush; the request's session commits them
        together or not at all.
        """
        if not text.strip():
            raise ValidationError(message="Verse text must not be blank", field="text")

        try:
            row = await db.get(BibleVerse, verse_id)
            if row is None:
                raise NotFoundError(resource="verse", resource_id=str(verse_id))

            row.text = text
            row.search_text = build_search_text(text)
            await db.execute(delete(BibleWordIndex).where(BibleWordIndex.verse_id == verse_id))
            db.add_all(self._word_rows(verse_id, text))
            await db.flush()

            logger.info("Verse %s text updated, search data regenerated", row.reference)
            return VerseResponse.model_validate(row)
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error updating verse %s: %s", verse_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the verse. Please try again.",
                context={"verse_id": verse_id},
            ) from e

    async def rebuild_word_index(self, db: AsyncSession, batch_size: int = 1000) -> int:
        """
        Regenerate search text and word index rows for every verse.

        Meant for data-load time. Returns the number of index entries written.
        """
        try:
            await db.execute(delete(BibleWordIndex))
            total = 0
            last_id = 0
            while True:
                # Keyset pagination over verse ids
                result = await db.execute(
                    select(BibleVerse)
                    .where(BibleVerse.id > last_id)
                    .order_by(BibleVerse.id)
                    .limit(batch_size)
                )
                batch = result.scalars().all()
                if not batch:
                    break
                for verse in batch:
                    verse.search_text = build_search_text(verse.text)
                    rows = self._word_rows(verse.id, verse.text)
                    db.add_all(rows)
                    total += len(rows)
                await db.flush()
                last_id = batch[-1].id
            logger.info("Word index rebuilt: %d entries", total)
            return total
        except Exception as e:
            logger.error("Word index rebuild failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not rebuild the word index.",
                context={"error_type": type(e).__name__},
            ) from e

    # ── Search ────────────────────────────────────────────────────────────

    async def search(
        self,
        db: AsyncSession,
        query: str,
        limit: Optional[int] = None,
        book_id: Optional[int] = None,
        chapter: Optional[int] = None,
    ) -> List[VerseSearchResult]:
        """
        Ranked free-text search over verse text.

        An empty query, a query of stop words only, or no match returns [].
        """
        limit = clamp_limit(limit, settings.search_max_limit, default=settings.search_default_limit)
        parsed = parse_query(query)
        if not parsed.has_terms or limit == 0:
            return []

        try:
            candidates = select(BibleVerse).where(
                *(
                    or_(*(
                        and_(*(BibleVerse.search_text.contains(stem, autoescape=True) for stem in clause.stems))
                        for clause in group
                    ))
                    for group in parsed.groups
                )
            )
            if book_id is not None:
                candidates = candidates.where(BibleVerse.book_id == book_id)
                if chapter is not None:
                    candidates = candidates.where(BibleVerse.chapter == chapter)
            candidates = candidates.order_by(
                BibleVerse.book_id, BibleVerse.chapter, BibleVerse.verse
            ).execution_options(populate_existing=True)

            result = await db.execute(candidates)
            verses = result.scalars().all()
        except Exception as e:
            logger.error("Database error searching verses for %r: %s", query, str(e), exc_info=True)
            raise DatabaseError(
                message="Search failed. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        hits = self.ranker.rank(parsed, (_verse_document(verse) for verse in verses), limit)
        logger.debug("Verse search %r: %d candidates, %d hits", query, len(verses), len(hits))
        return [_search_result(hit.document.ref, hit.highlight, hit.score) for hit in hits]

    async def word_count(self, db: AsyncSession, word: str) -> int:
        """Number of occurrences of `word` in the word index."""
        target = index_word(word)
        if not target:
            return 0
        result = await db.execute(
            select(func.count()).select_from(BibleWordIndex).where(BibleWordIndex.word == target)
        )
        return result.scalar() or 0

    async def symphony(self, db: AsyncSession, word: str, limit: Optional[int] = None) -> SymphonyResponse:
        """
        Concordance: every verse containing `word` exactly (after
        normalization), once each, in canonical order.

        `total_count` counts occurrences, so a word used three times in one
        verse and once in another gives two verses and a count of four.
        """
        limit = clamp_limit(limit, settings.search_max_limit, default=settings.symphony_default_limit)
        target = index_word(word)
        if not target:
            return SymphonyResponse(word=word, total_count=0, verses=[])

        try:
            total_count = await self.word_count(db, word)
            verse_ids = select(BibleWordIndex.verse_id).where(BibleWordIndex.word == target)
            result = await db.execute(
                select(BibleVerse)
                .where(BibleVerse.id.in_(verse_ids))
                .order_by(BibleVerse.book_id, BibleVerse.chapter, BibleVerse.verse)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            verses = result.scalars().all()
        except Exception as e:
            logger.error("Database error in symphony for %r: %s", word, str(e), exc_info=True)
            raise DatabaseError(
                message="Concordance lookup failed. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return SymphonyResponse(
            word=word,
            total_count=total_count,
            verses=[_search_result(verse) for verse in verses],
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _word_rows(verse_id: int, text: str) -> List[BibleWordIndex]:
        return [
            BibleWordIndex(verse_id=verse_id, word=word, position=position)
            for word, position in index_words(text)
        ]

    async def _require_book(self, db: AsyncSession, book_id: int) -> BibleBook:
        try:
            book = await db.get(BibleBook, book_id)
        except Exception as e:
            logger.error("Database error reading book %s: %s", book_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the book. Please try again.",
                context={"book_id": book_id},
            ) from e
        if book is None:
            raise NotFoundError(resource="book", resource_id=str(book_id))
        return book


# ── Singleton Instance ────────────────────────────────────────────────────
bible_service = BibleService()
