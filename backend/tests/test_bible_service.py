"""
Canticle Backend — Bible Service Tests
========================================

What:  Tests for BibleService reading, search, concordance and text updates.
How:   Runs against the seeded in-memory SQLite database (see conftest.py);
       error-path tests use the mock session.

What we test:
    ✅ Books, chapter info, chapters with verse ranges, single verses, pericopes
    ✅ Daily reading by day of year, verses in plan order
    ✅ Ranked search: AND, OR, phrases, exclusions, scopes, limits
    ✅ Symphony returns distinct verses and counts occurrences
    ✅ Updating verse text regenerates search text and word index
    ✅ Database failures surface as DatabaseError
"""

import datetime

import pytest
from sqlalchemy import func, select

from canticle.exceptions import DatabaseError, NotFoundError, ValidationError
from canticle.models.bible import BibleVerse, BibleWordIndex, Testament
from canticle.services.bible_service import BibleService


# Day of year of the seeded reading (February 1)
READING_DAY = 32


def _references(results):
    return [(r.verse.book_id, r.verse.chapter, r.verse.verse) for r in results]


class TestBibleServiceReading:
    """Tests for books, chapters and verses."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_list_books_canonical_order(self, db_session, seeded):
        books = await self.service.list_books(db_session)
        assert [book.id for book in books] == [1, 43, 62]

    @pytest.mark.asyncio
    async def test_list_books_by_testament(self, db_session, seeded):
        books = await self.service.list_books(db_session, testament=Testament.NEW)
        assert [book.name for book in books] == ["John", "1 John"]

    @pytest.mark.asyncio
    async def test_get_unknown_book(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_book(db_session, 2)

    @pytest.mark.asyncio
    async def test_chapters_info(self, db_session, seeded):
        info = await self.service.get_chapters_info(db_session, 43)
        assert [(c.chapter, c.verse_count) for c in info] == [(1, 1), (3, 1)]

    @pytest.mark.asyncio
    async def test_get_chapter_in_order(self, db_session, seeded):
        verses = await self.service.get_chapter(db_session, 1, 1)
        assert [v.verse for v in verses] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_get_chapter_range(self, db_session, seeded):
        verses = await self.service.get_chapter(db_session, 1, 1, start=2, end=3)
        assert [v.verse for v in verses] == [2, 3]

    @pytest.mark.asyncio
    async def test_get_missing_chapter(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_chapter(db_session, 1, 2)

    @pytest.mark.asyncio
    async def test_get_verse(self, db_session, seeded):
        verse = await self.service.get_verse(db_session, 43, 3, 16)
        assert verse.text.startswith("For God so loved the world")

    @pytest.mark.asyncio
    async def test_get_missing_verse(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_verse(db_session, 43, 3, 17)

    @pytest.mark.asyncio
    async def test_pericopes_in_reading_order(self, db_session, seeded):
        pericopes = await self.service.get_pericopes(db_session, 43)
        assert [(p.chapter, p.verse, p.heading) for p in pericopes] == [
            (1, 1, "The Word became flesh"),
            (3, 16, "God so loved"),
        ]

    @pytest.mark.asyncio
    async def test_book_without_pericopes(self, db_session, seeded):
        assert await self.service.get_pericopes(db_session, 62) == []

    @pytest.mark.asyncio
    async def test_pericopes_of_unknown_book(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_pericopes(db_session, 2)


class TestBibleServiceReadingPlan:
    """Tests for the day-of-year reading plan."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_verses_in_plan_order(self, db_session, seeded):
        reading = await self.service.get_daily_reading(db_session, READING_DAY)
        assert reading.day_of_year == READING_DAY
        assert reading.date == datetime.date(2026, 2, 1)
        assert [(v.book_id, v.chapter, v.verse) for v in reading.verses] == [(43, 3, 16), (1, 1, 1)]

    @pytest.mark.asyncio
    async def test_unplanned_day(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_daily_reading(db_session, 200)

    @pytest.mark.asyncio
    async def test_today_uses_day_of_year(self, db_session, seeded):
        reading = await self.service.get_today_reading(db_session, today=datetime.date(2031, 2, 1))
        assert reading.day_of_year == READING_DAY

    @pytest.mark.asyncio
    async def test_today_without_plan(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.get_today_reading(db_session, today=datetime.date(2026, 12, 31))


class TestBibleServiceSearch:
    """Tests for ranked verse search."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_and_query(self, db_session, seeded):
        results = await self.service.search(db_session, "loved world")
        assert _references(results) == [(43, 3, 16)]
        assert results[0].book_name == "От Иоанна"
        assert results[0].rank > 0

    @pytest.mark.asyncio
    async def test_exclusion(self, db_session, seeded):
        results = await self.service.search(db_session, "light -darkness")
        assert _references(results) == [(1, 1, 3)]

    @pytest.mark.asyncio
    async def test_or_query(self, db_session, seeded):
        results = await self.service.search(db_session, "light or waters")
        assert sorted(_references(results)) == [(1, 1, 2), (1, 1, 3), (43, 1, 5)]

    @pytest.mark.asyncio
    async def test_phrase(self, db_session, seeded):
        results = await self.service.search(db_session, '"face of the deep"')
        assert _references(results) == [(1, 1, 2)]

    @pytest.mark.asyncio
    async def test_ranked_by_density(self, db_session, seeded):
        results = await self.service.search(db_session, "god")
        assert len(results) == 5
        assert _references(results)[0] == (62, 4, 8)
        ranks = [r.rank for r in results]
        assert ranks == sorted(ranks, reverse=True)

    @pytest.mark.asyncio
    async def test_highlight(self, db_session, seeded):
        results = await self.service.search(db_session, "light", book_id=1)
        assert results[0].highlight == (
            "And God said, Let there be <mark>light</mark>: and there was <mark>light</mark>."
        )

    @pytest.mark.asyncio
    async def test_book_and_chapter_scope(self, db_session, seeded):
        assert len(await self.service.search(db_session, "god", book_id=1)) == 3
        assert len(await self.service.search(db_session, "god", book_id=1, chapter=2)) == 0
        assert _references(await self.service.search(db_session, "god", book_id=43)) == [(43, 3, 16)]

    @pytest.mark.asyncio
    async def test_chapter_without_book_is_ignored(self, db_session, seeded):
        assert len(await self.service.search(db_session, "god", chapter=99)) == 5

    @pytest.mark.asyncio
    async def test_limit(self, db_session, seeded):
        assert len(await self.service.search(db_session, "god", limit=2)) == 2
        assert await self.service.search(db_session, "god", limit=0) == []

    @pytest.mark.asyncio
    async def test_empty_and_stop_word_queries(self, db_session, seeded):
        assert await self.service.search(db_session, "") == []
        assert await self.service.search(db_session, "the and of") == []
        assert await self.service.search(db_session, "zebra") == []


class TestBibleServiceSymphony:
    """Tests for the word concordance."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_distinct_verses_and_occurrence_count(self, db_session, seeded):
        result = await self.service.symphony(db_session, "light")
        assert result.total_count == 3
        assert _references(result.verses) == [(1, 1, 3), (43, 1, 5)]

    @pytest.mark.asyncio
    async def test_case_and_punctuation_ignored(self, db_session, seeded):
        result = await self.service.symphony(db_session, "GOD;")
        assert result.total_count == 6
        assert _references(result.verses) == [
            (1, 1, 1), (1, 1, 2), (1, 1, 3), (43, 3, 16), (62, 4, 8),
        ]

    @pytest.mark.asyncio
    async def test_limit_trims_verses_not_count(self, db_session, seeded):
        result = await self.service.symphony(db_session, "god", limit=2)
        assert len(result.verses) == 2
        assert result.total_count == 6

    @pytest.mark.asyncio
    async def test_short_word(self, db_session, seeded):
        result = await self.service.symphony(db_session, "in")
        assert result.total_count == 0
        assert result.verses == []


class TestBibleServiceWriting:
    """Tests for keeping search data in step with verse text."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_update_regenerates_search_data(self, db_session, seeded):
        first = seeded["verses"][(1, 1, 1)]
        fifth = seeded["verses"][(43, 1, 5)]
        await self.service.update_verse_text(db_session, first, "Holy, holy, holy is the Lord God Almighty")
        await self.service.update_verse_text(db_session, fifth, "The holy city")
        await db_session.commit()

        result = await self.service.symphony(db_session, "holy")
        assert result.total_count == 4
        assert _references(result.verses) == [(1, 1, 1), (43, 1, 5)]

        assert await self.service.search(db_session, "beginning") == []
        assert _references(await self.service.search(db_session, "almighty")) == [(1, 1, 1)]
        assert (await self.service.symphony(db_session, "light")).total_count == 2

        verse = await db_session.get(BibleVerse, first)
        assert verse.search_text == "holy holy holy is the lord god almighty"

    @pytest.mark.asyncio
    async def test_update_unknown_verse(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.update_verse_text(db_session, 9999, "text")

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, db_session, seeded):
        with pytest.raises(ValidationError):
            await self.service.update_verse_text(db_session, seeded["verses"][(1, 1, 1)], "   ")
        with pytest.raises(ValidationError):
            await self.service.add_verse(db_session, 1, 1, 4, "")

    @pytest.mark.asyncio
    async def test_add_verse_to_unknown_book(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.service.add_verse(db_session, 2, 1, 1, "Now these are the names")

    @pytest.mark.asyncio
    async def test_rebuild_word_index(self, db_session, seeded):
        before = await db_session.execute(select(func.count()).select_from(BibleWordIndex))
        expected = before.scalar()

        written = await self.service.rebuild_word_index(db_session, batch_size=2)
        await db_session.commit()

        after = await db_session.execute(select(func.count()).select_from(BibleWordIndex))
        assert written == expected == after.scalar()
        assert (await self.service.symphony(db_session, "god")).total_count == 6


class TestBibleServiceErrors:
    """Database failures are wrapped, never leaked."""

    def setup_method(self):
        self.service = BibleService()

    @pytest.mark.asyncio
    async def test_list_books_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = RuntimeError("connection reset")
        with pytest.raises(DatabaseError):
            await self.service.list_books(mock_db_session)

    @pytest.mark.asyncio
    async def test_search_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = RuntimeError("connection reset")
        with pytest.raises(DatabaseError) as exc_info:
            await self.service.search(mock_db_session, "light")
        assert "connection reset" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_daily_reading_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = RuntimeError("connection reset")
        with pytest.raises(DatabaseError) as exc_info:
            await self.service.get_daily_reading(mock_db_session, 32)
        assert exc_info.value.context == {"day": 32}
