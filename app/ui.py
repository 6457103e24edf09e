import logging
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import repository, schemas
from .dependencies import get_db
from .errors import RepositoryError

logger = logging.getLogger("app.ui")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

router = APIRouter(tags=["ui"])

WORKSHOP_FIELD_RE = re.compile(r"^workshops\[(\d+)\]\[(workshop_id|production_time)\]$")


# =========================================================
# Вспомогательные функции для HTML‑интерфейса
# =========================================================

def build_status_messages(request: Request) -> List[Dict[str, Any]]:
    """
    Сообщения после редиректа: ?message=... (успех) и ?error=... (ошибка).
    """
    messages = []
    text = request.query_params.get("message")
    if text:
        messages.append({"type": "success", "title": "Готово", "text": text})
    text = request.query_params.get("error")
    if text:
        messages.append({"type": "error", "title": "Ошибка", "text": text})
    return messages


def redirect_to_list(**params: str) -> RedirectResponse:
    url = "/"
    if params:
        url = f"/?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def parse_decimal(raw_value: Any) -> Optional[Decimal]:
    """Число из строки вида '1 234,56' или '1234.56'; None для пустой или неверной строки."""
    cleaned = str(raw_value or "").strip().replace(" ", "").replace(",", ".")
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_price(
    raw_value: str,
    field_errors: Dict[str, str],
    field_key: str,
) -> Optional[Decimal]:
    """
    Парсинг денежного значения из строки (поддержка ',' и '.').
    Пустое значение означает 0. При ошибке записывает сообщение в field_errors[field_key].
    """
    if not str(raw_value or "").strip():
        return Decimal("0.00")

    value = parse_decimal(raw_value)
    if value is None:
        field_errors[field_key] = "Введите число в формате 1234,56."
        return None

    if value < 0:
        field_errors[field_key] = "Стоимость не может быть отрицательной."
        return None

    try:
        return value.quantize(Decimal("0.01"))
    except InvalidOperation:
        # слишком много значащих цифр для точности контекста Decimal
        field_errors[field_key] = "Слишком большое значение стоимости."
        return None


def parse_positive_int(
    raw_value: str,
    field_errors: Dict[str, str],
    field_key: str,
    field_title: str,
) -> Optional[int]:
    cleaned = str(raw_value or "").strip()
    if not cleaned:
        field_errors[field_key] = f"Укажите значение поля «{field_title}»."
        return None

    try:
        value = int(cleaned)
    except ValueError:
        field_errors[field_key] = f"Поле «{field_title}» должно быть целым числом."
        return None

    if value <= 0:
        field_errors[field_key] = f"Поле «{field_title}» должно быть больше нуля."
        return None

    return value


def parse_workshop_rows(form) -> List[schemas.WorkshopTimeIn]:
    """
    Собирает цеха из групп полей workshops[<n>][workshop_id] / workshops[<n>][production_time].
    Строка попадает в результат, только если оба значения положительные.
    """
    rows: Dict[int, Dict[str, str]] = {}
    for key, value in form.multi_items():
        match = WORKSHOP_FIELD_RE.match(key)
        if not match:
            continue
        index, field = int(match.group(1)), match.group(2)
        rows.setdefault(index, {})[field] = value

    workshops = []
    for index in sorted(rows):
        row = rows[index]
        try:
            workshop_id = int(str(row.get("workshop_id", "")).strip())
        except ValueError:
            continue
        production_time = parse_decimal(row.get("production_time"))
        if workshop_id > 0 and production_time is not None and production_time > 0:
            workshops.append(
                schemas.WorkshopTimeIn(workshop_id=workshop_id, production_time=production_time)
            )
    return workshops


def render_product_form(
    request: Request,
    db: Session,
    *,
    form_data: Dict[str, Any],
    field_errors: Dict[str, str],
    messages: List[Dict[str, Any]],
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    workshops = repository.list_workshops(db)
    context = {
        "active_page": "products",
        "materials": repository.list_materials(db),
        "product_types": repository.list_product_types(db),
        "workshops": workshops,
        "workshop_rows": max(len(workshops), 1),
        "form_data": form_data,
        "field_errors": field_errors,
        "messages": messages,
    }
    return templates.TemplateResponse(
        request,
        "product_form.html",
        context,
        status_code=status_code,
    )


# =========================================================
# Продукция: список, добавление, удаление (HTML)
# =========================================================

@router.get("/", response_class=HTMLResponse)
def ui_products_list(request: Request, db: Session = Depends(get_db)):
    """
    Табличный список продукции с суммарным временем изготовления.
    """
    try:
        products = repository.list_products_with_time(db)
    except SQLAlchemyError:
        logger.exception("Failed to list products")
        context = {
            "active_page": "products",
            "products": [],
            "messages": [
                {
                    "type": "error",
                    "title": "Ошибка",
                    "text": "Не удалось получить список продукции.",
                }
            ],
        }
        return templates.TemplateResponse(
            request,
            "products.html",
            context,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    context = {
        "active_page": "products",
        "products": products,
        "messages": build_status_messages(request),
    }
    return templates.TemplateResponse(request, "products.html", context)


@router.get("/products/new", response_class=HTMLResponse)
def ui_product_new(request: Request, db: Session = Depends(get_db)):
    return render_product_form(
        request,
        db,
        form_data={},
        field_errors={},
        messages=[],
    )


@router.post("/products/create", response_class=HTMLResponse)
async def ui_product_create(request: Request, db: Session = Depends(get_db)):
    """
    Создание продукции вместе с цехами из HTML‑формы.
    Серверная валидация; при ошибке форма показывается повторно с сообщением.
    Запросы к БД выполняются в пуле потоков, чтобы не блокировать цикл событий.
    """
    form = await request.form()
    field_errors: Dict[str, str] = {}

    name_clean = str(form.get("product_name") or "").strip()
    article_clean = str(form.get("article") or "").strip()
    if not name_clean:
        field_errors["product_name"] = "Укажите наименование продукции."

    material_id = parse_positive_int(form.get("material_id"), field_errors, "material_id", "Материал")
    type_id = parse_positive_int(form.get("type_id"), field_errors, "type_id", "Тип продукции")
    price = parse_price(form.get("min_price"), field_errors, "min_price")
    workshops = parse_workshop_rows(form)

    form_data = {
        "product_name": name_clean,
        "article": article_clean,
        "material_id": material_id,
        "type_id": type_id,
        "min_price": form.get("min_price") or "",
    }

    if field_errors:
        return await run_in_threadpool(
            render_product_form,
            request,
            db,
            form_data=form_data,
            field_errors=field_errors,
            messages=[
                {
                    "type": "error",
                    "title": "Ошибка ввода данных",
                    "text": "Исправьте ошибки в форме и повторите попытку.",
                }
            ],
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    data = schemas.ProductCreate(
        product_name=name_clean,
        material_id=material_id,
        type_id=type_id,
        min_price=price,
        article=article_clean,
    )
    try:
        await run_in_threadpool(repository.create_product_with_workshops, db, data, workshops)
    except RepositoryError as exc:
        logger.error("Failed to create product from form: %s", exc)
        return await run_in_threadpool(
            render_product_form,
            request,
            db,
            form_data=form_data,
            field_errors={"__all__": str(exc)},
            messages=[
                {
                    "type": "error",
                    "title": "Продукт не создан",
                    "text": f"Не удалось создать продукт: {exc}",
                }
            ],
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return redirect_to_list(message="Продукт успешно создан")


@router.post("/products/{product_id}/delete")
def ui_product_delete(product_id: str, db: Session = Depends(get_db)):
    try:
        product_pk = int(product_id)
    except ValueError:
        return redirect_to_list()

    try:
        repository.delete_product(db, product_pk)
    except RepositoryError as exc:
        logger.error("Failed to delete product from form: %s", exc)
        return redirect_to_list(error="Не удалось удалить продукт")

    return redirect_to_list(message="Продукт успешно удалён")
