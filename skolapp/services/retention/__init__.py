# skolapp/services/retention/__init__.py
"""
Consent and retention services for student quiz data.

Two retention modes:
- short (korttid): kept for the organization's retention_korttid_days
- long: kept while a guardian consent is granted and unexpired

Services:
- policy_service: Per-organization retention settings
- consent_service: Guardian consent records and invites
- data_mode: Retention mode decision at attempt creation
- sweep_service: Daily retention sweep
"""

from skolapp.services.retention.consent_service import (
    ConsentAlreadyRevokedError,
    ConsentError,
    ConsentNotFoundError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    accept_invite,
    decline_invite,
    get_active_consent,
    get_consent_status,
    issue_invite,
    revoke_consent,
)
from skolapp.services.retention.data_mode import resolve_data_mode
from skolapp.services.retention.policy_service import (
    RetentionSettings,
    get_retention_config,
    list_org_retention,
    resolve_retention_settings,
    update_org_settings,
)
from skolapp.services.retention.sweep_service import (
    SweepResult,
    collect_retention_stats,
    dry_run_sweep,
    run_retention_sweep,
)

__all__ = [
    # Policy
    "RetentionSettings",
    "resolve_retention_settings",
    "update_org_settings",
    "list_org_retention",
    "get_retention_config",
    # Consent
    "get_active_consent",
    "issue_invite",
    "accept_invite",
    "decline_invite",
    "revoke_consent",
    "get_consent_status",
    "ConsentError",
    "ConsentNotFoundError",
    "InviteExpiredError",
    "InviteAlreadyUsedError",
    "ConsentAlreadyRevokedError",
    # Data mode
    "resolve_data_mode",
    # Sweep
    "run_retention_sweep",
    "dry_run_sweep",
    "collect_retention_stats",
    "SweepResult",
]
