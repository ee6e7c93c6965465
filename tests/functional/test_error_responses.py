"""
Functional tests: how lending rule violations and bad input surface over HTTP.
"""
import pytest
from httpx import AsyncClient

from tests.functional.conftest import BORROWER_PASSWORD, auth_header


class TestNotFound:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        [
            "/api/v1/items/does-not-exist",
            "/api/v1/borrowers/does-not-exist",
            "/api/v1/borrowers/does-not-exist/loans",
            "/api/v1/borrowers/does-not-exist/reservations",
            "/api/v1/items/does-not-exist/loans",
            "/api/v1/items/does-not-exist/reservations",
            "/api/v1/loans/does-not-exist",
            "/api/v1/reservations/does-not-exist",
        ],
    )
    async def test_unknown_ids(self, client: AsyncClient, staff_headers, path):
        resp = await client.get(path, headers=staff_headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_borrow_unknown_item(self, client: AsyncClient, new_borrower):
        borrower = await new_borrower()
        resp = await client.post(
            "/api/v1/loans",
            json={"item_id": "nope", "borrower_id": borrower["id"], "password": BORROWER_PASSWORD},
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Item not found"

    @pytest.mark.asyncio
    async def test_return_unknown_loan(self, client: AsyncClient):
        resp = await client.post("/api/v1/loans/nope/return", json={"password": BORROWER_PASSWORD})
        assert resp.status_code == 404


class TestCredential:
    @pytest.mark.asyncio
    async def test_wrong_password_is_403(self, client: AsyncClient, new_item, new_borrower):
        item = await new_item()
        borrower = await new_borrower()
        resp = await client.post(
            "/api/v1/loans",
            json={"item_id": item["id"], "borrower_id": borrower["id"], "password": "guess-again"},
        )
        assert resp.status_code == 403

        after = (await client.get(f"/api/v1/items/{item['id']}")).json()
        assert after["available_copies"] == 1

    @pytest.mark.asyncio
    async def test_missing_password_is_422(self, client: AsyncClient, new_item, new_borrower):
        item = await new_item()
        borrower = await new_borrower()
        resp = await client.post(
            "/api/v1/reservations", json={"item_id": item["id"], "borrower_id": borrower["id"]}
        )
        assert resp.status_code == 422


class TestConflicts:
    @pytest.mark.asyncio
    async def test_double_return(self, client: AsyncClient, clock, new_item, new_borrower):
        item = await new_item()
        borrower = await new_borrower()
        loan = (
            await client.post(
                "/api/v1/loans",
                json={"item_id": item["id"], "borrower_id": borrower["id"], "password": BORROWER_PASSWORD},
            )
        ).json()
        body = {"password": BORROWER_PASSWORD}
        assert (await client.post(f"/api/v1/loans/{loan['id']}/return", json=body)).status_code == 200

        resp = await client.post(f"/api/v1/loans/{loan['id']}/return", json=body)
        assert resp.status_code == 409
        assert resp.json()["detail"]["reason"] == "already_returned"

    @pytest.mark.asyncio
    async def test_duplicate_reservation(self, client: AsyncClient, clock, new_item, new_borrower):
        item = await new_item(total_copies=2)
        borrower = await new_borrower()
        body = {"item_id": item["id"], "borrower_id": borrower["id"], "password": BORROWER_PASSWORD}
        assert (await client.post("/api/v1/reservations", json=body)).status_code == 201

        resp = await client.post("/api/v1/reservations", json=body)
        assert resp.status_code == 409
        assert resp.json()["detail"]["reason"] == "duplicate_active_reservation"

    @pytest.mark.asyncio
    async def test_reservation_cap(self, client: AsyncClient, clock, new_item, new_borrower):
        borrower = await new_borrower()
        for n in range(5):
            item = await new_item(f"Sold out {n}", total_copies=0)
            resp = await client.post(
                "/api/v1/reservations",
                json={"item_id": item["id"], "borrower_id": borrower["id"], "password": BORROWER_PASSWORD},
            )
            assert resp.status_code == 201

        extra = await new_item("One too many", total_copies=0)
        resp = await client.post(
            "/api/v1/reservations",
            json={"item_id": extra["id"], "borrower_id": borrower["id"], "password": BORROWER_PASSWORD},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["reason"] == "reservation_limit_exceeded"
        assert "5" in resp.json()["detail"]["message"]


class TestValidation:
    @pytest.mark.asyncio
    async def test_negative_copies_rejected(self, client: AsyncClient, librarian_user):
        resp = await client.post(
            "/api/v1/items",
            json={"title": "Broken", "total_copies": -1},
            headers=auth_header(librarian_user["token"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_bad_phone_rejected(self, client: AsyncClient, librarian_user):
        resp = await client.post(
            "/api/v1/borrowers",
            json={
                "email": "phone@test.com",
                "password": BORROWER_PASSWORD,
                "full_name": "Phone Test",
                "phone": "12ab",
            },
            headers=auth_header(librarian_user["token"]),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_borrower_email(self, client: AsyncClient, librarian_user):
        body = {"email": "twice@test.com", "password": BORROWER_PASSWORD, "full_name": "Twice Over"}
        headers = auth_header(librarian_user["token"])
        assert (await client.post("/api/v1/borrowers", json=body, headers=headers)).status_code == 201

        resp = await client.post("/api/v1/borrowers", json=body, headers=headers)
        assert resp.status_code == 409
