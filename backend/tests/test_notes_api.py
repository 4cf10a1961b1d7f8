"""
NoteVault Backend — Notes API Tests
=====================================

What:  End-to-end tests through the FastAPI app (routing, auth, validation,
       error mapping, serialization) with SQLite behind the store.
How:   `test_client` fixture (HTTPX AsyncClient over ASGITransport).

What we test:
    ✅ Create → pin → delete → 404 lifecycle
    ✅ 401 without a valid bearer token
    ✅ 400 for malformed bodies, 403 across users, 404 for unknown ids
    ✅ Pagination clamping, filters, ordering, stats
    ✅ Request id header, banner and health endpoints
    ✅ Store failures surface as an opaque 500
"""

import pytest
from unittest.mock import AsyncMock
from uuid import uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from notevault.routes.notes import get_note_service
from notevault.services.note_service import NoteService
from notevault.services.note_store import SQLNoteStore

from conftest import ALICE, BOB


NOTES = "/api/notes"


async def create(client, headers, **body):
    body.setdefault("title", "Untitled")
    response = await client.post(NOTES, json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["note"]


class TestNoteLifecycle:

    @pytest.mark.asyncio
    async def test_create_pin_delete_then_not_found(self, test_client, auth_headers):
        headers = auth_headers(ALICE)

        response = await test_client.post(NOTES, json={"title": "X"}, headers=headers)
        assert response.status_code == 201
        note = response.json()["note"]
        assert note["title"] == "X"
        assert note["content"] == ""
        assert note["tags"] == []
        assert note["isPinned"] is False
        assert note["isArchived"] is False
        assert note["owner"] == ALICE
        assert {"id", "createdAt", "updatedAt"} <= set(note)

        pinned = await test_client.patch(f"{NOTES}/{note['id']}/pin", headers=headers)
        assert pinned.status_code == 200
        assert pinned.json()["note"]["isPinned"] is True

        deleted = await test_client.delete(f"{NOTES}/{note['id']}", headers=headers)
        assert deleted.status_code == 204
        assert deleted.content == b""

        missing = await test_client.get(f"{NOTES}/{note['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_get_returns_stored_note(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers, title="Trip", content="pack", tags=["t", "t"])

        response = await test_client.get(f"{NOTES}/{created['id']}", headers=headers)

        assert response.status_code == 200
        note = response.json()["note"]
        assert note["id"] == created["id"]
        assert note["content"] == "pack"
        assert note["tags"] == ["t", "t"]

    @pytest.mark.asyncio
    async def test_put_updates_only_sent_fields(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers, title="Plan", content="draft", tags=["a"])

        response = await test_client.put(
            f"{NOTES}/{created['id']}",
            json={"isArchived": True, "tags": ["b"]},
            headers=headers,
        )

        assert response.status_code == 200
        note = response.json()["note"]
        assert note["isArchived"] is True
        assert note["tags"] == ["b"]
        assert note["title"] == "Plan"
        assert note["content"] == "draft"

    @pytest.mark.asyncio
    async def test_archive_toggle_round_trip(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers)
        url = f"{NOTES}/{created['id']}/archive"

        first = await test_client.patch(url, headers=headers)
        second = await test_client.patch(url, headers=headers)

        assert first.json()["note"]["isArchived"] is True
        assert second.json()["note"]["isArchived"] is False


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token_is_unauthorized(self, test_client):
        response = await test_client.get(NOTES)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token_is_unauthorized(self, test_client):
        response = await test_client.get(NOTES, headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_without_token_stores_nothing(self, test_client, auth_headers):
        response = await test_client.post(NOTES, json={"title": "sneaky"})
        assert response.status_code == 401

        listing = await test_client.get(NOTES, headers=auth_headers(ALICE))
        assert listing.json()["meta"]["total"] == 0


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"title": ""},
            {"title": "   "},
            {"title": "ok", "tags": "work"},
            {"title": "ok", "tags": [1, {"x": 1}]},
            {"title": "ok", "content": 5},
        ],
    )
    async def test_create_rejects_bad_body(self, test_client, auth_headers, body):
        response = await test_client.post(NOTES, json=body, headers=auth_headers(ALICE))

        assert response.status_code == 400
        payload = response.json()
        assert payload["error"] == "validation_error"
        assert payload["request_id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"title": None},
            {"title": ""},
            {"isPinned": "maybe"},
            {"tags": "not-a-list"},
        ],
    )
    async def test_put_rejects_bad_body(self, test_client, auth_headers, body):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers, title="Keep")

        response = await test_client.put(f"{NOTES}/{created['id']}", json=body, headers=headers)

        assert response.status_code == 400
        unchanged = await test_client.get(f"{NOTES}/{created['id']}", headers=headers)
        assert unchanged.json()["note"]["title"] == "Keep"

    @pytest.mark.asyncio
    async def test_missing_title_reports_field(self, test_client, auth_headers):
        response = await test_client.post(NOTES, json={"content": "x"}, headers=auth_headers(ALICE))

        errors = response.json()["details"]["errors"]
        assert any(error["field"] == "title" for error in errors)


class TestOwnership:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,suffix",
        [
            ("GET", ""),
            ("PUT", ""),
            ("DELETE", ""),
            ("PATCH", "/pin"),
            ("PATCH", "/archive"),
        ],
    )
    async def test_other_user_is_forbidden(self, test_client, auth_headers, method, suffix):
        created = await create(test_client, auth_headers(ALICE), title="Private")
        url = f"{NOTES}/{created['id']}{suffix}"
        kwargs = {"json": {"title": "mine now"}} if method == "PUT" else {}

        response = await test_client.request(method, url, headers=auth_headers(BOB), **kwargs)

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert ALICE not in response.text

        still_there = await test_client.get(f"{NOTES}/{created['id']}", headers=auth_headers(ALICE))
        note = still_there.json()["note"]
        assert note["title"] == "Private"
        assert note["isPinned"] is False
        assert note["isArchived"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("note_id", [str(uuid4()), "not-a-uuid"])
    async def test_unknown_or_malformed_id_is_not_found(self, test_client, auth_headers, note_id):
        response = await test_client.get(f"{NOTES}/{note_id}", headers=auth_headers(ALICE))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_listing_is_scoped_to_caller(self, test_client, auth_headers):
        await create(test_client, auth_headers(ALICE), title="alice's")
        await create(test_client, auth_headers(BOB), title="bob's")

        response = await test_client.get(NOTES, headers=auth_headers(BOB))

        assert [n["title"] for n in response.json()["notes"]] == ["bob's"]


class TestListing:

    @pytest.mark.asyncio
    async def test_page_meta_and_total_header(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        for i in range(3):
            await create(test_client, headers, title=f"n{i}")

        response = await test_client.get(NOTES, params={"page": 2, "limit": 2}, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["meta"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}
        assert [n["title"] for n in body["notes"]] == ["n0"]
        assert response.headers["X-Total-Count"] == "3"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params,expected_page,expected_limit",
        [
            ({"limit": 500}, 1, 100),
            ({"limit": 0}, 1, 20),
            ({"limit": "abc", "page": "xyz"}, 1, 20),
            ({"page": 0}, 1, 20),
            ({"page": -4, "limit": -1}, 1, 1),
        ],
    )
    async def test_pagination_values_are_normalized(
        self, test_client, auth_headers, params, expected_page, expected_limit
    ):
        response = await test_client.get(NOTES, params=params, headers=auth_headers(ALICE))

        assert response.status_code == 200
        meta = response.json()["meta"]
        assert meta["page"] == expected_page
        assert meta["limit"] == expected_limit

    @pytest.mark.asyncio
    async def test_pinned_first_then_recently_updated(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        first = await create(test_client, headers, title="first")
        await create(test_client, headers, title="second")

        await test_client.put(f"{NOTES}/{first['id']}", json={"content": "edited"}, headers=headers)
        listing = await test_client.get(NOTES, headers=headers)
        assert [n["title"] for n in listing.json()["notes"]] == ["first", "second"]

        second_id = listing.json()["notes"][1]["id"]
        await test_client.patch(f"{NOTES}/{second_id}/pin", headers=headers)
        listing = await test_client.get(NOTES, headers=headers)
        assert [n["title"] for n in listing.json()["notes"]] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_listing_twice_is_identical(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        for i in range(4):
            await create(test_client, headers, title=f"n{i}")

        first = await test_client.get(NOTES, headers=headers)
        second = await test_client.get(NOTES, headers=headers)

        assert first.json() == second.json()

    @pytest.mark.asyncio
    async def test_filters(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        report = await create(test_client, headers, title="Quarterly Report", tags=["work"])
        await create(test_client, headers, title="Groceries", content="milk", tags=["home"])
        await test_client.patch(f"{NOTES}/{report['id']}/archive", headers=headers)

        async def titles(**params):
            response = await test_client.get(NOTES, params=params, headers=headers)
            return [n["title"] for n in response.json()["notes"]]

        assert await titles(archived="true") == ["Quarterly Report"]
        assert await titles(archived="false") == ["Groceries"]
        assert await titles(tag="home") == ["Groceries"]
        assert await titles(tag="hom") == []
        assert await titles(search="REPORT") == ["Quarterly Report"]
        assert await titles(search="milk") == ["Groceries"]
        assert sorted(await titles()) == ["Groceries", "Quarterly Report"]


class TestStats:

    @pytest.mark.asyncio
    async def test_stats_counts_and_tag_breakdown(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        await create(test_client, headers, title="one", tags=["a", "b"])
        second = await create(test_client, headers, title="two", tags=["a"])
        await test_client.patch(f"{NOTES}/{second['id']}/pin", headers=headers)
        await create(test_client, auth_headers(BOB), title="other", tags=["a", "z"])

        response = await test_client.get(f"{NOTES}/stats", headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "total": 2,
            "pinned": 1,
            "archived": 0,
            "tags": [
                {"_id": "a", "tag": "a", "count": 2},
                {"_id": "b", "tag": "b", "count": 1},
            ],
        }

    @pytest.mark.asyncio
    async def test_stats_for_new_user(self, test_client, auth_headers):
        response = await test_client.get(f"{NOTES}/stats", headers=auth_headers("newcomer"))

        assert response.json() == {"total": 0, "pinned": 0, "archived": 0, "tags": []}


class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_banner(self, test_client):
        response = await test_client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "Notes API is running"}

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.get("/")

        assert len(response.headers["X-Request-ID"]) == 8


class TestLimits:

    @pytest.mark.asyncio
    async def test_huge_page_returns_empty_page(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        await create(test_client, headers, title="only")

        response = await test_client.get(
            NOTES, params={"page": "99999999999999999999"}, headers=headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["notes"] == []
        assert body["meta"]["total"] == 1
        assert body["meta"]["page"] == 1_000_000_000

    @pytest.mark.asyncio
    async def test_overlong_tag_is_rejected_on_create(self, test_client, auth_headers):
        response = await test_client.post(
            NOTES, json={"title": "t", "tags": ["ok", "x" * 256]}, headers=auth_headers(ALICE)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_overlong_tag_is_rejected_on_update(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers, tags=["keep"])

        response = await test_client.put(
            f"{NOTES}/{created['id']}", json={"tags": ["x" * 256]}, headers=headers
        )

        assert response.status_code == 400
        unchanged = await test_client.get(f"{NOTES}/{created['id']}", headers=headers)
        assert unchanged.json()["note"]["tags"] == ["keep"]

    @pytest.mark.asyncio
    async def test_tag_at_column_width_is_accepted(self, test_client, auth_headers):
        note = await create(test_client, auth_headers(ALICE), tags=["x" * 255])

        assert note["tags"] == ["x" * 255]

    @pytest.mark.asyncio
    async def test_overlong_subject_is_unauthorized(self, test_client, auth_headers):
        response = await test_client.get(NOTES, headers=auth_headers("u" * 65))

        assert response.status_code == 401


class TestTimestamps:

    @pytest.mark.asyncio
    async def test_reloaded_note_keeps_utc_timestamps(self, test_client, auth_headers):
        headers = auth_headers(ALICE)
        created = await create(test_client, headers, title="stamped")

        response = await test_client.get(f"{NOTES}/{created['id']}", headers=headers)
        note = response.json()["note"]

        assert note["createdAt"] == created["createdAt"]
        assert note["updatedAt"] == created["updatedAt"]
        assert note["createdAt"].endswith("Z")


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_database_error_is_an_opaque_500(self, api_app, test_client, auth_headers):
        session = AsyncMock(spec=AsyncSession)
        session.scalar.side_effect = OperationalError(
            "SELECT count(*) FROM notes", {}, Exception("could not connect to 10.0.0.5:5432")
        )
        api_app.dependency_overrides[get_note_service] = lambda: NoteService(SQLNoteStore(session))

        response = await test_client.get(NOTES, headers=auth_headers(ALICE))

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "server_error"
        assert body["request_id"]
        assert "details" not in body
        assert "10.0.0.5" not in response.text
        assert "SELECT" not in response.text
        assert "OperationalError" not in response.text
