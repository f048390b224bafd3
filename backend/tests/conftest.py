"""
Canticle Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (in-memory DB, seeded data, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine: In-memory SQLite engine with the schema created
    ├── db_session: AsyncSession bound to db_engine
    ├── seeded: Books, verses, a songbook, a tag and four songs (committed)
    ├── mock_db_session: Mock database session (no real DB needed)
    └── test_client: HTTPX AsyncClient wired to db_engine

Seed data:
    Verses   Genesis 1:1-3, John 1:5, John 3:16, 1 John 4:8 (KJV text)
    Songs    amazing_grace   "Amazing Grace"               #1, key G, worship, 10 views
             grace_greater   "Grace Greater Than Our Sin"  #2, key D, praise, 5 views
             how_great       "How Great Thou Art"          #3, no chords, worship+praise,
                                                           tag "classic", 100 views
             holy_god        "Святый Боже"                 no songbook, key Am, prayer, 1 view
    Extras   pericopes for Genesis 1 and John 1, 3; day 32 reading (John 3:16, Gen 1:1);
             editions 2005, 1990 and an undated pocket edition of "hymns"
"""

import datetime
import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

from canticle import models  # noqa: E402,F401  (registers every table)
from canticle.database import Base, get_db_session  # noqa: E402
from canticle.models.bible import BibleBook, BiblePericope, DailyReading, DailyReadingVerse  # noqa: E402
from canticle.models.song import Song, SongCategory, Songbook, SongbookEdition, SongTag  # noqa: E402
from canticle.schemas.song import SongCreateRequest  # noqa: E402
from canticle.services.bible_service import bible_service  # noqa: E402
from canticle.services.song_service import song_service  # noqa: E402


BOOKS = [
    dict(id=1, name="Genesis", name_ru="Бытие", abbreviation="Gen", testament="old", chapters_count=50),
    dict(id=43, name="John", name_ru="От Иоанна", abbreviation="John", testament="new", chapters_count=21),
    dict(id=62, name="1 John", name_ru="1-е Иоанна", abbreviation="1John", testament="new", chapters_count=5),
]

VERSES = [
    (1, 1, 1, "In the beginning God created the heaven and the earth."),
    (1, 1, 2, "And the earth was without form, and void; and darkness was upon the face of the deep. "
              "And the Spirit of God moved upon the face of the waters."),
    (1, 1, 3, "And God said, Let there be light: and there was light."),
    (43, 1, 5, "And the light shineth in darkness; and the darkness comprehended it not."),
    (43, 3, 16, "For God so loved the world, that he gave his only begotten Son, that whosoever "
                "believeth in him should not perish, but have everlasting life."),
    (62, 4, 8, "He that loveth not knoweth not God; for God is love."),
]

# Day of year of the seeded reading (February 1)
READING_DAY = 32

AMAZING_GRACE = (
    "{title: Amazing Grace}\n"
    "[G]Amazing grace, how [C]sweet the [G]sound\n"
    "That saved a wretch like [D]me"
)


async def _seed(session: AsyncSession) -> dict:
    session.add_all([BibleBook(**book) for book in BOOKS])
    await session.flush()

    verse_ids = {}
    for book_id, chapter, verse, text in VERSES:
        row = await bible_service.add_verse(session, book_id, chapter, verse, text)
        verse_ids[(book_id, chapter, verse)] = row.id

    songbook = Songbook(code="hymns", name="Hymns of Grace", name_ru="Гимны благодати")
    tag = SongTag(name="classic", name_ru="Классика")
    session.add_all([songbook, tag])
    await session.flush()

    songs = {
        "amazing_grace": SongCreateRequest(
            songbook_id=songbook.id,
            number=1,
            title="Amazing Grace",
            author_lyrics="John Newton",
            original_key="G",
            content=AMAZING_GRACE,
            categories=[SongCategory.WORSHIP],
        ),
        "grace_greater": SongCreateRequest(
            songbook_id=songbook.id,
            number=2,
            title="Grace Greater Than Our Sin",
            original_key="D",
            content="[D]Marvelous grace of our loving Lord\nGrace that exceeds our sin and our guilt",
            categories=[SongCategory.PRAISE],
        ),
        "how_great": SongCreateRequest(
            songbook_id=songbook.id,
            number=3,
            title="How Great Thou Art",
            content=(
                "O Lord my God, when I in awesome wonder\n"
                "Consider all the worlds Thy hands have made\n"
                "Then sings my soul, amazing grace abounding"
            ),
            categories=[SongCategory.WORSHIP, SongCategory.PRAISE],
            tag_ids=[tag.id],
        ),
        "holy_god": SongCreateRequest(
            title="Святый Боже",
            original_key="Am",
            content="[Am]Святый Боже, [Dm]Святый Крепкий\n[E]Святый Бессмертный, помилуй нас",
            categories=[SongCategory.PRAYER],
        ),
    }
    views = {"amazing_grace": 10, "grace_greater": 5, "how_great": 100, "holy_god": 1}

    song_ids = {}
    for key, request in songs.items():
        created = await song_service.create_song(session, request)
        song_ids[key] = created.id
        await session.execute(
            update(Song).where(Song.id == created.id).values(views_count=views[key])
        )

    session.add_all([
        BiblePericope(book_id=1, chapter=1, verse=1, heading="The Creation"),
        BiblePericope(book_id=43, chapter=3, verse=16, heading="God so loved"),
        BiblePericope(book_id=43, chapter=1, verse=1, heading="The Word became flesh"),
        SongbookEdition(songbook_id=songbook.id, edition_name="Pocket edition"),
        SongbookEdition(songbook_id=songbook.id, edition_name="First edition", year_published=1990, songs_count=300),
        SongbookEdition(songbook_id=songbook.id, edition_name="Revised edition", year_published=2005, songs_count=420),
    ])
    reading = DailyReading(day_of_year=READING_DAY, date=datetime.date(2026, 2, 1))
    session.add(reading)
    await session.flush()
    session.add_all([
        DailyReadingVerse(daily_reading_id=reading.id, position=1, verse_id=verse_ids[(43, 3, 16)]),
        DailyReadingVerse(daily_reading_id=reading.id, position=2, verse_id=verse_ids[(1, 1, 1)]),
    ])

    await session.commit()
    return {
        "verses": verse_ids,
        "songbook_id": songbook.id,
        "tag_id": tag.id,
        "songs": song_ids,
    }


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    Provides an in-memory SQLite engine with every table created.

    StaticPool keeps a single connection, so every session of the test sees
    the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Seeds the database in its own committed session and returns the ids."""
    async with session_factory() as session:
        return await _seed(session)


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    What:    A MagicMock that simulates AsyncSession behavior.
    Why:     Error-path tests should not need a database that can fail.
    How:     Mocks execute, get, flush, commit, rollback, and close methods.
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    Provides an async HTTP test client for endpoint testing.

    What:    HTTPX AsyncClient configured to talk to our FastAPI app.
    How:     Uses ASGITransport to route requests directly to the app; the
             session dependency is overridden to use the test engine, with
             the same commit/rollback behavior as production.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from canticle.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
