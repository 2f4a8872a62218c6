from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
APP_ROOT = REPO_ROOT / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.core.defaults import DEFAULT_LOCAL_DB_PATH  # noqa: E402
from vendor_request_app.infrastructure.local_db_bootstrap import SQL_ROOT, initialize_local_db  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize the local SQLite vendor request database.")
    parser.add_argument(
        "--db-path",
        default=str(REPO_ROOT / DEFAULT_LOCAL_DB_PATH),
        help="Output SQLite database path.",
    )
    parser.add_argument(
        "--sql-root",
        default=str(SQL_ROOT),
        help="Root SQL folder path (contains schema/ and seed/).",
    )
    parser.add_argument(
        "--skip-seed",
        action="store_true",
        help="Skip running seed scripts.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete existing database file before creating.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    db_path = Path(args.db_path).resolve()
    counts = initialize_local_db(
        db_path,
        reset=args.reset,
        seed=not args.skip_seed,
        sql_root=Path(args.sql_root).resolve(),
    )
    print(f"Local database ready: {db_path}")
    print(f"Schema scripts applied: {counts['schema_scripts']}")
    print(f"Seed scripts applied: {counts['seed_scripts']}")


if __name__ == "__main__":
    main()
