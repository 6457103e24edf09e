from decimal import Decimal

from fastapi.testclient import TestClient
from starlette.datastructures import FormData

from app import models
from app.ui import parse_workshop_rows

FORM = {
    "product_name": "Desk",
    "material_id": "1",
    "type_id": "1",
    "min_price": "1 500,00",
    "article": "D-1",
}


def test_products_page(client: TestClient):
    response = client.get("/")

    assert response.status_code == 200
    assert "Продукция" in response.text
    assert "Продукция пока не добавлена." in response.text


def test_products_page_shows_status_message(client: TestClient):
    response = client.get("/", params={"message": "Продукт успешно создан"})

    assert response.status_code == 200
    assert "Продукт успешно создан" in response.text


def test_products_page_shows_error_message(client: TestClient):
    response = client.get("/", params={"error": "Не удалось удалить продукт"})

    assert "Не удалось удалить продукт" in response.text


def test_new_product_form_lists_reference_data(client: TestClient):
    response = client.get("/products/new")

    assert response.status_code == 200
    for name in ("Oak", "Pine", "Table", "Chair", "Assembly", "Painting", "Packing"):
        assert name in response.text
    assert "workshops[0][workshop_id]" in response.text
    assert "workshops[2][production_time]" in response.text


def test_create_product_from_form(client: TestClient, db_session):
    data = {
        **FORM,
        "workshops[0][workshop_id]": "1",
        "workshops[0][production_time]": "2,5",
        "workshops[1][workshop_id]": "2",
        "workshops[1][production_time]": "3.5",
        "workshops[2][workshop_id]": "",
        "workshops[2][production_time]": "",
    }

    response = client.post("/products/create", data=data, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"].startswith("/?message=")

    product = client.get("/api/products").json()["products"][0]
    assert product["product_name"] == "Desk"
    assert product["min_price"] == 1500.0
    assert product["total_production_time"] == 6.0
    assert db_session.query(models.ProductWorkshop).count() == 2


def test_create_product_from_form_validation_errors(client: TestClient):
    data = {**FORM, "product_name": " ", "material_id": "", "min_price": "abc"}

    response = client.post("/products/create", data=data)

    assert response.status_code == 400
    assert "Укажите наименование продукции." in response.text
    assert "Укажите значение поля «Материал»." in response.text
    assert "Введите число в формате 1234,56." in response.text
    assert client.get("/api/products").json()["count"] == 0


def test_create_product_from_form_price_too_large(client: TestClient):
    data = {**FORM, "min_price": "1e30"}

    response = client.post("/products/create", data=data)

    assert response.status_code == 400
    assert "Слишком большое значение стоимости." in response.text
    assert client.get("/api/products").json()["count"] == 0


def test_create_product_from_form_duplicate_workshop(client: TestClient):
    data = {
        **FORM,
        "workshops[0][workshop_id]": "3",
        "workshops[0][production_time]": "1",
        "workshops[1][workshop_id]": "3",
        "workshops[1][production_time]": "2",
    }

    response = client.post("/products/create", data=data)

    assert response.status_code == 400
    assert "Не удалось создать продукт" in response.text
    assert client.get("/api/products").json()["count"] == 0


def test_delete_product_from_ui(client: TestClient):
    created = client.post(
        "/api/products",
        json={"product_name": "Shelf", "material_id": 2, "type_id": 2, "min_price": 10, "article": "S-1"},
    ).json()

    response = client.post(f"/products/{created['id']}/delete", follow_redirects=False)

    assert response.status_code == 303
    assert "message=" in response.headers["location"]
    assert client.get("/api/products").json()["count"] == 0


def test_delete_missing_product_from_ui(client: TestClient):
    response = client.post("/products/9999/delete", follow_redirects=False)

    assert response.status_code == 303
    assert "error=" in response.headers["location"]


def test_delete_with_bad_id_redirects_to_list(client: TestClient):
    response = client.post("/products/abc/delete", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/"


def test_parse_workshop_rows_keeps_only_positive_pairs():
    form = FormData([
        ("workshops[1][production_time]", "4"),
        ("workshops[1][workshop_id]", "2"),
        ("workshops[0][workshop_id]", "1"),
        ("workshops[0][production_time]", "1,5"),
        ("workshops[2][workshop_id]", "3"),
        ("workshops[2][production_time]", "0"),
        ("workshops[3][workshop_id]", "x"),
        ("workshops[3][production_time]", "2"),
        ("workshops[4][workshop_id]", "3"),
        ("product_name", "ignored"),
    ])

    rows = parse_workshop_rows(form)

    assert [(r.workshop_id, r.production_time) for r in rows] == [
        (1, Decimal("1.5")),
        (2, Decimal("4")),
    ]
