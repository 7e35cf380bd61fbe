from __future__ import annotations

from pathlib import Path

from timeclock.database.bootstrap import apply_schema, list_tables
from timeclock.database.connection import DBConfig, DatabaseConnection
from timeclock.main import load_settings


def main() -> None:
    settings = load_settings()
    config = DBConfig.from_dict(dict(settings.DB_CONFIG))
    conn = DatabaseConnection.get_instance(config)

    schema_path = Path(__file__).resolve().parents[1] / "database" / "schema.sql"
    apply_schema(conn, schema_path=schema_path)
    tables = list_tables(conn)
    print(
        "OK: Applied schema.sql -> "
        f"{config.user}@{config.host}:{config.port}/{config.database} "
        f"(tables={len(tables)})"
    )


if __name__ == "__main__":
    main()
