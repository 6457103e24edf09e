from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app import models

WIDGET = {
    "product_name": "Widget",
    "material_id": 1,
    "type_id": 1,
    "min_price": 9.99,
    "article": "W-1",
}


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_products_empty(client: TestClient):
    response = client.get("/api/products")

    assert response.status_code == 200
    assert response.json() == {"products": [], "count": 0}


def test_create_product(client: TestClient):
    response = client.post("/api/products", json=WIDGET)

    assert response.status_code == 201
    product = response.json()
    assert product["product_name"] == "Widget"
    assert product["material_name"] == "Oak"
    assert product["type_name"] == "Table"
    assert product["min_price"] == 9.99
    assert product["article"] == "W-1"
    assert product["total_production_time"] == 0


def test_create_product_requires_name_material_and_type(client: TestClient):
    for field in ("product_name", "material_id", "type_id"):
        body = {key: value for key, value in WIDGET.items() if key != field}
        response = client.post("/api/products", json=body)
        assert response.status_code == 400, field


def test_create_product_with_unknown_material_is_server_error(client: TestClient):
    response = client.post("/api/products", json={**WIDGET, "material_id": 77})

    assert response.status_code == 500
    assert "Failed to create product" in response.json()["detail"]


def test_create_product_with_workshops(client: TestClient):
    body = {
        **WIDGET,
        "workshops": [
            {"workshop_id": 1, "production_time": 2.5},
            {"workshop_id": 2, "production_time": 3.5},
        ],
    }

    response = client.post("/api/products/with-workshops", json=body)

    assert response.status_code == 201
    assert response.json()["total_production_time"] == 6.0


def test_create_product_with_duplicate_workshop_leaves_nothing(client: TestClient, db_session):
    body = {
        **WIDGET,
        "workshops": [
            {"workshop_id": 1, "production_time": 2},
            {"workshop_id": 1, "production_time": 3},
        ],
    }

    response = client.post("/api/products/with-workshops", json=body)

    assert response.status_code == 500
    assert "workshop 1" in response.json()["detail"]
    assert client.get("/api/products").json()["count"] == 0
    assert db_session.query(models.Product).filter_by(name="Widget").count() == 0
    assert db_session.query(models.ProductWorkshop).count() == 0


def test_create_product_with_workshops_rejects_bad_workshop_entry(client: TestClient):
    body = {**WIDGET, "workshops": [{"production_time": 2}]}

    response = client.post("/api/products/with-workshops", json=body)

    assert response.status_code == 400


def test_get_product(client: TestClient):
    created = client.post("/api/products", json=WIDGET).json()

    response = client.get(f"/api/products/{created['id']}")

    assert response.status_code == 200
    assert response.json() == created


def test_get_product_bad_id(client: TestClient):
    response = client.get("/api/products/abc")
    assert response.status_code == 400


def test_get_product_not_found(client: TestClient):
    response = client.get("/api/products/9999")
    assert response.status_code == 404


def test_list_products_query_error(client: TestClient, monkeypatch):
    def failing_list(db):
        raise OperationalError("SELECT", {}, Exception("server closed the connection"))

    monkeypatch.setattr("app.api.repository.list_products_with_time", failing_list)

    response = client.get("/api/products")
    assert response.status_code == 500


def test_list_products_returns_count(client: TestClient):
    client.post("/api/products", json=WIDGET)
    client.post("/api/products", json={**WIDGET, "product_name": "Gadget", "article": "G-1"})

    payload = client.get("/api/products").json()

    assert payload["count"] == 2
    assert [p["product_name"] for p in payload["products"]] == ["Widget", "Gadget"]


def test_delete_product(client: TestClient):
    body = {**WIDGET, "workshops": [{"workshop_id": 1, "production_time": 2}]}
    created = client.post("/api/products/with-workshops", json=body).json()

    response = client.delete(f"/api/products/{created['id']}")

    assert response.status_code == 200
    assert "message" in response.json()
    assert client.get(f"/api/products/{created['id']}").status_code == 404


def test_delete_missing_product(client: TestClient):
    response = client.delete("/api/products/9999")
    assert response.status_code == 502


def test_delete_bad_id(client: TestClient):
    response = client.delete("/api/products/abc")
    assert response.status_code == 400


def test_reference_lists(client: TestClient):
    materials = client.get("/api/materials").json()
    types = client.get("/api/product-types").json()
    workshops = client.get("/api/workshops").json()

    assert [m["name"] for m in materials] == ["Oak", "Pine"]
    assert [t["name"] for t in types] == ["Chair", "Table"]
    assert [w["name"] for w in workshops] == ["Assembly", "Packing", "Painting"]
    assert workshops[0]["kind"] == "processing"


def test_delete_product_commit_failure(client: TestClient, monkeypatch):
    created = client.post("/api/products", json=WIDGET).json()

    def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    monkeypatch.setattr(Session, "commit", failing_commit)

    response = client.delete(f"/api/products/{created['id']}")

    assert response.status_code == 502
    monkeypatch.undo()
    assert client.get(f"/api/products/{created['id']}").status_code == 200
