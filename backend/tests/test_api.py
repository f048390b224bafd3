"""
Canticle Backend — API Endpoint Tests
=======================================

What:  End-to-end tests through the FastAPI app (middleware, handlers, routes).
How:   HTTPX AsyncClient over ASGITransport against the seeded SQLite database.

What we test:
    ✅ Bible reading, pericopes, reading plan, search, symphony and verse updates
    ✅ Song listing, editions, search, single song, transposition, create/update/delete
    ✅ Error body shape for 400/404 and FastAPI's 422
    ✅ Request ID propagation, rate limiting, health check
"""

import datetime
import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock

from canticle.config import settings
from canticle.database import get_db_session
from canticle.models.bible import DailyReading, DailyReadingVerse


class TestBibleEndpoints:

    @pytest.mark.asyncio
    async def test_list_books(self, test_client, seeded):
        response = await test_client.get("/api/bible/books")
        assert response.status_code == 200
        assert [book["id"] for book in response.json()] == [1, 43, 62]
        assert response.headers["Cache-Control"] == "public, max-age=3600"

    @pytest.mark.asyncio
    async def test_list_books_by_testament(self, test_client, seeded):
        response = await test_client.get("/api/bible/books", params={"testament": "old"})
        assert [book["name"] for book in response.json()] == ["Genesis"]

    @pytest.mark.asyncio
    async def test_invalid_testament(self, test_client, seeded):
        response = await test_client.get("/api/bible/books", params={"testament": "apocrypha"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_chapter_with_range(self, test_client, seeded):
        response = await test_client.get("/api/bible/books/1/chapters/1", params={"start": 2})
        assert response.status_code == 200
        assert [verse["verse"] for verse in response.json()] == [2, 3]

    @pytest.mark.asyncio
    async def test_chapters_info(self, test_client, seeded):
        response = await test_client.get("/api/bible/books/1/chapters-info")
        assert response.json() == [{"chapter": 1, "verse_count": 3}]

    @pytest.mark.asyncio
    async def test_pericopes(self, test_client, seeded):
        response = await test_client.get("/api/bible/books/1/pericopes")
        assert response.status_code == 200
        assert response.json() == [{"chapter": 1, "verse": 1, "heading": "The Creation"}]

    @pytest.mark.asyncio
    async def test_day_reading(self, test_client, seeded):
        response = await test_client.get("/api/bible/day/32")
        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2026-02-01"
        assert [verse["verse"] for verse in body["verses"]] == [16, 1]

    @pytest.mark.asyncio
    async def test_day_reading_not_planned(self, test_client, seeded):
        response = await test_client.get("/api/bible/day/200")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_day_out_of_range(self, test_client, seeded):
        assert (await test_client.get("/api/bible/day/0")).status_code == 422
        assert (await test_client.get("/api/bible/day/367")).status_code == 422

    @pytest.mark.asyncio
    async def test_today_reading(self, test_client, db_session, seeded):
        day = datetime.datetime.now(datetime.timezone.utc).timetuple().tm_yday
        if day != 32:
            reading = DailyReading(day_of_year=day)
            db_session.add(reading)
            await db_session.flush()
            db_session.add(
                DailyReadingVerse(daily_reading_id=reading.id, position=1, verse_id=seeded["verses"][(1, 1, 3)])
            )
            await db_session.commit()

        response = await test_client.get("/api/bible/today")
        assert response.status_code == 200
        assert response.json()["day_of_year"] == day

    @pytest.mark.asyncio
    async def test_missing_verse(self, test_client, seeded):
        response = await test_client.get("/api/bible/books/1/chapters/1/verses/40")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["request_id"]

    @pytest.mark.asyncio
    async def test_search(self, test_client, seeded):
        response = await test_client.get("/api/bible/search", params={"q": "light -darkness"})
        assert response.status_code == 200
        results = response.json()
        assert len(results) == 1
        assert results[0]["verse"]["verse"] == 3
        assert results[0]["book_name"] == "Бытие"
        assert "<mark>light</mark>" in results[0]["highlight"]

    @pytest.mark.asyncio
    async def test_search_without_query(self, test_client, seeded):
        response = await test_client.get("/api/bible/search")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_symphony(self, test_client, seeded):
        response = await test_client.get("/api/bible/symphony/Light")
        body = response.json()
        assert body["word"] == "Light"
        assert body["total_count"] == 3
        assert [result["verse"]["book_id"] for result in body["verses"]] == [1, 43]

    @pytest.mark.asyncio
    async def test_update_verse(self, test_client, seeded):
        verse_id = seeded["verses"][(1, 1, 3)]
        response = await test_client.put(f"/api/bible/verses/{verse_id}", json={"text": "Let there be light"})
        assert response.status_code == 200
        assert response.json()["text"] == "Let there be light"

        symphony = await test_client.get("/api/bible/symphony/light")
        assert symphony.json()["total_count"] == 2

    @pytest.mark.asyncio
    async def test_update_verse_blank_text(self, test_client, seeded):
        verse_id = seeded["verses"][(1, 1, 3)]
        response = await test_client.put(f"/api/bible/verses/{verse_id}", json={"text": "   "})
        assert response.status_code == 422


class TestSongEndpoints:

    @pytest.mark.asyncio
    async def test_list_songs_sorted_by_views(self, test_client, seeded):
        response = await test_client.get("/api/songs", params={"sort_by": "views_desc", "limit": 2})
        assert response.status_code == 200
        assert [song["title"] for song in response.json()] == ["How Great Thou Art", "Amazing Grace"]

    @pytest.mark.asyncio
    async def test_songbooks(self, test_client, seeded):
        response = await test_client.get("/api/songs/songbooks")
        songbook = response.json()[0]
        assert songbook["songs_count"] == 3

        response = await test_client.get(f"/api/songs/songbooks/{songbook['id']}")
        assert response.json()["songs_with_chords_count"] == 2

    @pytest.mark.asyncio
    async def test_songbook_editions(self, test_client, seeded):
        response = await test_client.get(f"/api/songs/songbooks/{seeded['songbook_id']}/editions")
        assert response.status_code == 200
        assert [edition["year_published"] for edition in response.json()] == [2005, 1990, None]

        response = await test_client.get(f"/api/songs/songbooks/{uuid.uuid4()}/editions")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_categories_and_tags(self, test_client, seeded):
        categories = (await test_client.get("/api/songs/categories")).json()
        assert {"category": "prayer", "name_ru": "Молитва"} in categories

        by_category = await test_client.get("/api/songs/categories/prayer")
        assert [song["title"] for song in by_category.json()] == ["Святый Боже"]

        tags = (await test_client.get("/api/songs/tags")).json()
        assert tags[0]["name"] == "classic"

    @pytest.mark.asyncio
    async def test_search(self, test_client, seeded):
        response = await test_client.get("/api/songs/search", params={"q": "grace"})
        assert response.status_code == 200
        results = response.json()
        assert results[0]["song"]["title"] == "Grace Greater Than Our Sin"
        assert results[0]["songbook_name"] == "Гимны благодати"

    @pytest.mark.asyncio
    async def test_get_song_and_transpose(self, test_client, seeded):
        song_id = seeded["songs"]["holy_god"]
        response = await test_client.get(f"/api/songs/{song_id}")
        assert response.status_code == 200
        assert response.json()["views_count"] == 2

        response = await test_client.get(f"/api/songs/{song_id}/transpose/-2")
        body = response.json()
        assert body["original_key"] == "Gm"
        assert body["content"].startswith("[Gm]Святый Боже, [Cm]Святый Крепкий")
        assert body["semitones"] == -2

    @pytest.mark.asyncio
    async def test_transpose_out_of_range(self, test_client, seeded):
        song_id = seeded["songs"]["holy_god"]
        response = await test_client.get(f"/api/songs/{song_id}/transpose/13")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_stateless_transpose(self, test_client):
        response = await test_client.post(
            "/api/songs/transpose",
            json={"content": "[Am]Jesus [C]loves [G]me", "semitones": 2, "key": "Am"},
        )
        assert response.status_code == 200
        assert response.json() == {"content": "[Bm]Jesus [D]loves [A]me", "semitones": 2, "key": "Bm"}

    @pytest.mark.asyncio
    async def test_unknown_song(self, test_client, seeded):
        response = await test_client.get(f"/api/songs/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_create_update_delete(self, test_client, seeded):
        response = await test_client.post(
            "/api/songs",
            json={
                "title": "It Is Well",
                "content": "[C]When peace like a river attendeth my way",
                "songbook_id": str(seeded["songbook_id"]),
                "categories": ["worship"],
            },
        )
        assert response.status_code == 201
        created = response.json()
        assert created["first_line"] == "When peace like a river attendeth my way"
        assert created["songbook_code"] == "hymns"

        response = await test_client.put(
            f"/api/songs/{created['id']}",
            json={"content": "When sorrows like sea billows roll"},
        )
        assert response.status_code == 200
        assert response.json()["has_chords"] is False
        assert response.json()["title"] == "It Is Well"

        response = await test_client.delete(f"/api/songs/{created['id']}")
        assert response.status_code == 204
        response = await test_client.get(f"/api/songs/{created['id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_with_null_clears_key(self, test_client, seeded):
        song_id = seeded["songs"]["amazing_grace"]
        response = await test_client.put(f"/api/songs/{song_id}", json={"original_key": None, "content": None})
        assert response.status_code == 200
        body = response.json()
        assert body["original_key"] is None
        assert body["has_chords"] is True

    @pytest.mark.asyncio
    async def test_create_with_unknown_songbook(self, test_client, seeded):
        response = await test_client.post(
            "/api/songs",
            json={"title": "Orphan", "content": "words", "songbook_id": str(uuid.uuid4())},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "songbook_id"

    @pytest.mark.asyncio
    async def test_create_with_blank_title(self, test_client, seeded):
        response = await test_client.post("/api/songs", json={"title": "   ", "content": "words"})
        assert response.status_code == 422


class TestMiddleware:

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/api/songs/categories", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/api/songs/categories")
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_rate_limit(self, monkeypatch):
        from canticle.main import create_app

        monkeypatch.setattr(settings, "rate_limit_requests", 2)
        transport = ASGITransport(app=create_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            for _ in range(2):
                assert (await client.get("/api/songs/categories")).status_code == 200
            response = await client.get("/api/songs/categories")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["error"] == "rate_limit_exceeded"


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_unhealthy(self, test_client):
        from canticle.main import app

        async def broken_session():
            session = AsyncMock()
            session.execute.side_effect = OperationalError("SELECT 1", {}, ConnectionRefusedError())
            yield session

        app.dependency_overrides[get_db_session] = broken_session
        response = await test_client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
