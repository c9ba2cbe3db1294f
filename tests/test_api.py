import pytest
from fastapi.testclient import TestClient

from api import create_app


@pytest.fixture
def client(shop):
    # An empty key keeps mutating routes open whatever the environment says
    with TestClient(create_app(shop=shop, api_key="")) as test_client:
        yield test_client


def _add_book(client, **overrides):
    payload = {"title": "Dune", "author": "Frank Herbert", "price_rent": 20, "stock": 1}
    payload.update(overrides)
    response = client.post("/api/books", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def _add_customer(client, phone="0811111111", name="Somchai"):
    response = client.post("/api/customers", json={"name": name, "phone": phone})
    assert response.status_code == 200, response.text
    return response.json()


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Bookstore API is running!"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["books"] == 0


def test_book_crud(client):
    book = _add_book(client, isbn="9780441172719", stock=3)
    assert book["id"] == 1
    assert book["status"] == "available"

    response = client.put(f"/api/books/{book['id']}", json={"price_rent": 25})
    assert response.status_code == 200
    assert response.json()["price_rent"] == 25
    assert response.json()["title"] == "Dune"

    assert [b["id"] for b in client.get("/api/books").json()] == [book["id"]]

    response = client.delete(f"/api/books/{book['id']}")
    assert response.json() == {"message": "Book deleted successfully"}
    assert client.get("/api/books").json() == []


def test_missing_book_returns_404_error_body(client):
    response = client.get("/api/books/99")

    assert response.status_code == 404
    assert response.json() == {"error": "Book not found"}


def test_invalid_payloads_return_400(client):
    response = client.post("/api/books", json={"author": "Nobody"})
    assert response.status_code == 400
    assert "title" in response.json()["error"]

    response = client.post("/api/books", json={"title": "   ", "author": "Nobody"})
    assert response.status_code == 400
    assert response.json() == {"error": "title is required"}


def test_duplicate_phone_returns_400(client):
    _add_customer(client, phone="0811111111")

    response = client.post("/api/customers", json={"name": "Other", "phone": "0811111111"})

    assert response.status_code == 400
    assert response.json() == {"error": "Phone number already exists"}


def test_customer_update_and_delete(client):
    customer = _add_customer(client)

    response = client.put(f"/api/customers/{customer['id']}", json={"email": "somchai@example.com"})
    assert response.status_code == 200
    assert response.json()["email"] == "somchai@example.com"
    assert response.json()["phone"] == "0811111111"

    assert client.delete(f"/api/customers/{customer['id']}").status_code == 200
    assert client.get(f"/api/customers/{customer['id']}").status_code == 404


def test_rental_flow(client, clock):
    book = _add_book(client)
    customer = _add_customer(client)

    response = client.post("/api/rentals", json={"book_id": book["id"], "customer_id": customer["id"], "rental_days": 3})
    assert response.status_code == 200
    rental = response.json()
    assert rental["status"] == "active"
    assert rental["book_title"] == "Dune"
    assert rental["customer_phone"] == "0811111111"
    assert client.get(f"/api/books/{book['id']}").json()["status"] == "rented"

    # The last copy is out
    response = client.post("/api/rentals", json={"book_id": book["id"], "customer_id": customer["id"]})
    assert response.status_code == 409
    assert response.json() == {"error": "Book is out of stock"}

    response = client.delete(f"/api/books/{book['id']}")
    assert response.status_code == 409
    assert response.json() == {"error": "Cannot delete book with active rentals"}

    response = client.delete(f"/api/rentals/{rental['id']}")
    assert response.status_code == 409

    clock.advance(2)
    response = client.put(f"/api/rentals/{rental['id']}/return")
    assert response.status_code == 200
    assert response.json()["status"] == "returned"
    assert response.json()["days_rented"] == 2
    assert client.get(f"/api/books/{book['id']}").json()["stock"] == 1

    response = client.put(f"/api/rentals/{rental['id']}/return")
    assert response.status_code == 409
    assert response.json() == {"error": "Rental is not active"}

    assert client.delete(f"/api/rentals/{rental['id']}").json() == {"message": "Rental deleted successfully"}


def test_rental_with_unknown_references(client):
    customer = _add_customer(client)

    response = client.post("/api/rentals", json={"book_id": 5, "customer_id": customer["id"]})
    assert response.status_code == 404
    assert response.json() == {"error": "Book not found"}

    response = client.post("/api/rentals", json={"book_id": 1, "customer_id": 1, "rental_days": 0})
    assert response.status_code == 400


def test_overdue_list_and_stats(client, clock):
    customer = _add_customer(client)
    late = _add_book(client, title="Late")
    fine = _add_book(client, title="Fine", price_rent=12)
    late_rental = client.post("/api/rentals", json={"book_id": late["id"], "customer_id": customer["id"], "rental_days": 1}).json()
    fine_rental = client.post("/api/rentals", json={"book_id": fine["id"], "customer_id": customer["id"], "rental_days": 10}).json()
    client.put(f"/api/rentals/{fine_rental['id']}/return")
    clock.advance(3)

    stats = client.get("/api/rentals/stats/overview").json()
    assert stats == {
        "total_rentals": 2,
        "active_rentals": 1,
        "overdue_rentals": 1,
        "returned_rentals": 1,
        "total_revenue": 12,
    }

    overdue = client.get("/api/rentals/overdue/list").json()
    assert [r["id"] for r in overdue] == [late_rental["id"]]
    assert overdue[0]["status"] == "overdue"

    # Once stored as overdue the row no longer counts as active
    stats = client.get("/api/rentals/stats/overview").json()
    assert stats["active_rentals"] == 0
    assert stats["overdue_rentals"] == 0

    rentals = client.get(f"/api/customers/{customer['id']}/rentals").json()
    assert {r["id"] for r in rentals} == {late_rental["id"], fine_rental["id"]}
    assert client.get(f"/api/rentals/{late_rental['id']}").json()["is_overdue"] is True


def test_api_key_guards_mutations(shop):
    with TestClient(create_app(shop=shop, api_key="secret")) as client:
        response = client.post("/api/books", json={"title": "Dune", "author": "Frank Herbert"})
        assert response.status_code == 403
        assert response.json() == {"error": "Could not validate credentials"}

        assert client.get("/api/books").status_code == 200

        response = client.post(
            "/api/books",
            json={"title": "Dune", "author": "Frank Herbert"},
            headers={"X-API-Key": "secret"},
        )
        assert response.status_code == 200
