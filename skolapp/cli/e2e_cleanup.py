# skolapp/cli/e2e_cleanup.py
"""
Remove data owned by end-to-end test accounts.

Usage:
    python -m skolapp.cli.e2e_cleanup
    python -m skolapp.cli.e2e_cleanup --dry-run --max-age-hours 48

DRY_RUN and MAX_AGE_HOURS in the environment supply the defaults. Exits 0
once every table has been attempted; exits 1 on configuration errors.
"""

import argparse
import uuid

from dotenv import load_dotenv

from skolapp.cli.retention import get_db_session, load_job_settings

load_dotenv()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Skolapp E2E test data cleanup")
    parser.add_argument("--dry-run", action="store_true", help="Preview only (also enabled by DRY_RUN=true)")
    parser.add_argument("--max-age-hours", type=int, default=None, help="Age threshold (default: MAX_AGE_HOURS or 24)")
    args = parser.parse_args(argv)

    from skolapp.logging_config import clear_run_context, configure_logging, set_run_context
    from skolapp.services.e2e_cleanup_service import cleanup_e2e_test_data

    settings = load_job_settings()
    dry_run = args.dry_run or settings.DRY_RUN
    max_age_hours = args.max_age_hours if args.max_age_hours is not None else settings.MAX_AGE_HOURS

    if max_age_hours < 1:
        parser.error("--max-age-hours must be at least 1")

    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
    set_run_context(run_id=str(uuid.uuid4()), job="e2e_cleanup")

    db = get_db_session()
    try:
        cleanup_e2e_test_data(db, max_age_hours=max_age_hours, dry_run=dry_run)
    finally:
        db.close()
        clear_run_context()


if __name__ == "__main__":
    main()
