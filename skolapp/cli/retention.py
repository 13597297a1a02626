# skolapp/cli/retention.py
"""
CLI commands for consent retention management.

Usage:
    python -m skolapp.cli.retention sweep
    python -m skolapp.cli.retention sweep --dry-run
    python -m skolapp.cli.retention status
    python -m skolapp.cli.retention list-orgs
    python -m skolapp.cli.retention set-settings <org_id> --korttid-days 14

The sweep is meant to run once a day from a scheduler. It exits 0 once the
sequence has completed, even if individual items failed; failures are in
the logs. It exits 1 only when the environment is misconfigured.
"""

import argparse
import sys
import uuid

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv()


def load_job_settings():
    """Validate configuration before touching the database. Exits 1 on failure."""
    from skolapp.config import ConfigurationError, get_settings, require_service_credentials

    try:
        settings = get_settings()
        require_service_credentials(settings)
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        sys.exit(1)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return settings


def get_db_session():
    """Get a database session."""
    from skolapp.database import SessionLocal

    return SessionLocal()


def cmd_sweep(args):
    """Run the retention sweep."""
    from skolapp.logging_config import clear_run_context, configure_logging, set_run_context
    from skolapp.services.retention import run_retention_sweep

    settings = load_job_settings()
    dry_run = args.dry_run or settings.DRY_RUN

    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
    set_run_context(run_id=str(uuid.uuid4()), job="retention_sweep")

    db = get_db_session()
    try:
        result = run_retention_sweep(db, dry_run=dry_run)
    finally:
        db.close()
        clear_run_context()

    if args.verbose:
        print(f"\n{'DRY RUN - ' if dry_run else ''}Retention sweep\n")
        print(f"Consents expired: {result.consents_expired}")
        print(f"Invites expired: {result.invites_expired}")
        print(f"Short-term attempts deleted: {result.short_attempts_deleted}")
        print(f"Long-term attempts deleted: {result.long_attempts_deleted}")

        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")


def cmd_status(args):
    """Show consent and attempt counts plus org settings."""
    from skolapp.services.retention import collect_retention_stats, list_org_retention

    load_job_settings()
    db = get_db_session()
    try:
        stats = collect_retention_stats(db)
        orgs = list_org_retention(db)

        print("\n=== Retention Status ===\n")

        print(f"Total consents: {stats['total_consents']}")
        print(f"  Granted: {stats['active_consents']}")
        print(f"\nShort-term attempts: {stats['short_term_attempts']}")
        print(f"Long-term attempts: {stats['long_term_attempts']}")

        customized = sum(1 for _, settings in orgs if not settings.is_default)
        print(f"\nOrganizations: {len(orgs)} ({customized} with custom settings)")

        print()
    finally:
        db.close()


def cmd_list_orgs(args):
    """List organizations with their effective retention settings."""
    from skolapp.services.retention import list_org_retention

    load_job_settings()
    db = get_db_session()
    try:
        orgs = list_org_retention(db)

        print("\n=== Organization Retention Settings ===\n")
        for org, settings in orgs:
            marker = "[DEFAULT]" if settings.is_default else ""
            print(f"{org.name} ({org.id}) {marker}")
            print(f"  Short-term retention: {settings.retention_korttid_days} days")
            print(f"  Consent valid: {settings.consent_valid_months} months")
            print(f"  Require guardian consent: {settings.require_guardian_consent}")
            print()
    finally:
        db.close()


def cmd_set_settings(args):
    """Update one organization's retention settings."""
    from skolapp.services.retention import get_retention_config, update_org_settings

    load_job_settings()
    db = get_db_session()
    try:
        try:
            update_org_settings(
                db,
                args.org_id,
                retention_korttid_days=args.korttid_days,
                consent_valid_months=args.consent_months,
                require_guardian_consent=args.require_consent,
            )
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

        config = get_retention_config(db, args.org_id)
        print(f"Updated retention settings for org {config['org_id']}")
        print(f"  Short-term retention: {config['retention_korttid_days']} days")
        print(f"  Consent valid: {config['consent_valid_months']} months")
        print(f"  Require guardian consent: {config['require_guardian_consent']}")
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Skolapp Retention Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview the daily sweep
  python -m skolapp.cli.retention sweep --dry-run --verbose

  # Run the daily sweep
  python -m skolapp.cli.retention sweep

  # Check current counts
  python -m skolapp.cli.retention status

  # Shorten one school's short-term window
  python -m skolapp.cli.retention set-settings 6f1c... --korttid-days 14
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # sweep command
    sweep_parser = subparsers.add_parser("sweep", help="Run the retention sweep")
    sweep_parser.add_argument("--dry-run", action="store_true", help="Preview only (also enabled by DRY_RUN=true)")
    sweep_parser.add_argument("--verbose", action="store_true", help="Print a summary after the run")
    sweep_parser.set_defaults(func=cmd_sweep)

    # status command
    status_parser = subparsers.add_parser("status", help="Show retention status")
    status_parser.set_defaults(func=cmd_status)

    # list-orgs command
    list_parser = subparsers.add_parser("list-orgs", help="List organization settings")
    list_parser.set_defaults(func=cmd_list_orgs)

    # set-settings command
    settings_parser = subparsers.add_parser("set-settings", help="Update an organization's settings")
    settings_parser.add_argument("org_id", type=uuid.UUID, help="Organization id")
    settings_parser.add_argument("--korttid-days", type=int, help="Short-term retention window in days")
    settings_parser.add_argument("--consent-months", type=int, help="Guardian consent validity in months")
    settings_parser.add_argument(
        "--require-consent",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Require guardian consent for long-term data",
    )
    settings_parser.set_defaults(func=cmd_set_settings)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
