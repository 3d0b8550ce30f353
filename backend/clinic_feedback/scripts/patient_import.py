from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from clinic_feedback.core.errors import ImportRejected
from clinic_feedback.core.settings import settings
from clinic_feedback.db.session import SessionLocal
from clinic_feedback.services.patient_import.pipeline import ImportConfig, import_patients_from_file


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Import walk-in patients from an .xlsx or .csv spreadsheet."
    )
    parser.add_argument("path", help="Spreadsheet to import.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and validate rows without writing patients.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Branch similarity threshold (defaults to BRANCH_MATCH_THRESHOLD).",
    )
    args = parser.parse_args(argv)

    path = Path(args.path)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return 2

    config = ImportConfig.from_settings(settings)
    if args.threshold is not None:
        config = ImportConfig(branch_threshold=args.threshold, header_scan_rows=config.header_scan_rows)

    session = SessionLocal()
    try:
        report = import_patients_from_file(
            session, path.read_bytes(), path.name, config, dry_run=args.dry_run
        )
        if args.dry_run:
            session.rollback()
        else:
            session.commit()
    except ImportRejected as exc:
        session.rollback()
        print(json.dumps({"rejected": exc.message, "error_count": exc.error_count}, indent=2, ensure_ascii=False))
        return 1
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    print(json.dumps({**report.as_dict(), "dry_run": args.dry_run}, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
