from __future__ import annotations

import argparse
import sys
from pathlib import Path

from trade_dashboard.config.app_config import load_app_config
from trade_dashboard.ingest.journal import load_journal
from trade_dashboard.storage.sqlite_store import connect, init_db, upsert_setups, upsert_trades


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import a trade journal export into SQLite.")
    parser.add_argument("journal_path", type=Path, help="Path to journal export (json/csv/tsv).")
    parser.add_argument("--db", type=Path, default=None, help="SQLite DB path (default: from config).")
    parser.add_argument("--config", type=Path, default=None, help="App config TOML path.")
    args = parser.parse_args(argv)

    if not args.journal_path.exists():
        raise SystemExit(f"Journal file not found: {args.journal_path}")

    result = load_journal(args.journal_path)
    if result.skipped:
        print(f"Skipped {result.skipped} rows during normalization.", file=sys.stderr)

    db_path = args.db or load_app_config(args.config).app.db_path
    conn = connect(db_path)
    try:
        init_db(conn)
        setup_count = upsert_setups(conn, result.setups)
        trade_count = upsert_trades(conn, result.trades)
    finally:
        conn.close()

    print(f"setups_upserted {setup_count}")
    print(f"trades_upserted {trade_count}")
    print(f"db_path {db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
