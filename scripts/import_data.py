from pathlib import Path

from app.config import get_settings
from app.database import Database
from app.importer import import_workbook
from app.log import configure_logging

ROOT = Path(__file__).resolve().parent
DATA = Path("/app/data") if Path("/app/data").exists() else ROOT.parent / "data"
WORKBOOK = DATA / "Products_import.xlsx"


def main():
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    database = Database.from_settings(settings)
    print(f"Connecting to DB: {database.engine.url!r}")
    try:
        if settings.CREATE_SCHEMA:
            database.create_schema()
        report = import_workbook(database, WORKBOOK)
    finally:
        database.dispose()

    print(f"Import finished: {report.imported} imported, {report.failed} failed.")


if __name__ == "__main__":
    main()
