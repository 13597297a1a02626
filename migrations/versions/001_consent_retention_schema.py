"""Consent and retention schema.

Two retention modes for student quiz data:
- short (korttid): purged after the organization's retention window
- long: kept while a guardian consent is granted and unexpired

Changes:
- Create orgs and org_settings for per-organization retention config
- Create guardian_consents and consent_invites for the consent lifecycle
- Create users and the user-owned tables touched by E2E cleanup
- Create quizzes, attempts (with data_mode) and answers (cascading)

Revision ID: 001_consent_retention_schema
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_consent_retention_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create consent and retention tables."""

    # -------------------------------------------------------------------------
    # 1. Organizations and retention settings
    # -------------------------------------------------------------------------
    print("  Creating orgs and org_settings tables...")

    op.create_table(
        'orgs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'org_settings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('org_id', sa.UUID(), nullable=False),
        sa.Column('retention_korttid_days', sa.Integer(), nullable=True, server_default='30'),
        sa.Column('consent_valid_months', sa.Integer(), nullable=True, server_default='12'),
        sa.Column('require_guardian_consent', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('org_id', name='uq_org_settings_org_id'),
        sa.CheckConstraint('retention_korttid_days >= 1', name='ck_org_settings_korttid_days'),
        sa.CheckConstraint('consent_valid_months >= 1', name='ck_org_settings_consent_months'),
    )

    print("  Created orgs and org_settings tables")

    # -------------------------------------------------------------------------
    # 2. Guardian consent
    # -------------------------------------------------------------------------
    print("  Creating guardian_consents and consent_invites tables...")

    op.create_table(
        'guardian_consents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('org_id', sa.UUID(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('granted_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('method', sa.String(length=32), nullable=True),
        sa.Column('evidence', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('updated_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_guardian_consents_student_id', 'guardian_consents', ['student_id'], unique=False)
    op.create_index('ix_guardian_consents_org_id', 'guardian_consents', ['org_id'], unique=False)
    op.create_index('ix_guardian_consents_status_expires', 'guardian_consents', ['status', 'expires_at'], unique=False)

    op.create_table(
        'consent_invites',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('org_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('guardian_email', sa.String(length=320), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='sent'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('meta', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('token', name='uq_consent_invites_token'),
    )
    op.create_index('ix_consent_invites_student_id', 'consent_invites', ['student_id'], unique=False)
    op.create_index('ix_consent_invites_status_expires', 'consent_invites', ['status', 'expires_at'], unique=False)

    print("  Created consent tables with 5 indexes")

    # -------------------------------------------------------------------------
    # 3. Users and user-owned rows
    # -------------------------------------------------------------------------
    print("  Creating users, user_profiles and entitlements tables...")

    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('user_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_created_at', 'users', ['created_at'], unique=False)

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['id'], ['users.id']),
    )

    op.create_table(
        'entitlements',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('uid', sa.UUID(), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=True),
        sa.Column('quota_remaining', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['uid'], ['users.id']),
    )
    op.create_index('ix_entitlements_uid', 'entitlements', ['uid'], unique=False)

    print("  Created user tables")

    # -------------------------------------------------------------------------
    # 4. Quizzes, attempts and answers
    # -------------------------------------------------------------------------
    print("  Creating quiz tables...")

    op.create_table(
        'quizzes',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('org_id', sa.UUID(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
    )
    op.create_index('ix_quizzes_org_id', 'quizzes', ['org_id'], unique=False)
    op.create_index('ix_quizzes_created_by', 'quizzes', ['created_by'], unique=False)

    op.create_table(
        'attempts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=True),
        sa.Column('student_alias', sa.String(length=64), nullable=True),
        sa.Column('data_mode', sa.String(length=8), nullable=False, server_default='short'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
        sa.CheckConstraint("data_mode IN ('short', 'long')", name='ck_attempts_data_mode'),
    )
    op.create_index('ix_attempts_quiz_id', 'attempts', ['quiz_id'], unique=False)
    op.create_index('ix_attempts_student_id', 'attempts', ['student_id'], unique=False)
    op.create_index('ix_attempts_data_mode_created', 'attempts', ['data_mode', 'created_at'], unique=False)

    op.create_table(
        'answers',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('attempt_id', sa.UUID(), nullable=False),
        sa.Column('question_id', sa.String(length=64), nullable=False),
        sa.Column('answer', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['attempt_id'], ['attempts.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_answers_attempt_id', 'answers', ['attempt_id'], unique=False)

    op.create_table(
        'quiz_submissions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_quiz_submissions_user_id', 'quiz_submissions', ['user_id'], unique=False)

    op.create_table(
        'live_quiz_sessions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=False),
        sa.Column('pin', sa.String(length=16), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='lobby'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
    )
    op.create_index('ix_live_quiz_sessions_created_by', 'live_quiz_sessions', ['created_by'], unique=False)

    op.create_table(
        'live_quiz_participants',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('session_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['live_quiz_sessions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
    )
    op.create_index('ix_live_quiz_participants_user_id', 'live_quiz_participants', ['user_id'], unique=False)

    print("  Created quiz tables with 8 indexes")
    print("  Migration complete!")


def downgrade() -> None:
    """Drop consent and retention tables."""

    print("  Dropping quiz tables...")
    op.drop_index('ix_live_quiz_participants_user_id', table_name='live_quiz_participants')
    op.drop_table('live_quiz_participants')
    op.drop_index('ix_live_quiz_sessions_created_by', table_name='live_quiz_sessions')
    op.drop_table('live_quiz_sessions')
    op.drop_index('ix_quiz_submissions_user_id', table_name='quiz_submissions')
    op.drop_table('quiz_submissions')
    op.drop_index('ix_answers_attempt_id', table_name='answers')
    op.drop_table('answers')
    op.drop_index('ix_attempts_data_mode_created', table_name='attempts')
    op.drop_index('ix_attempts_student_id', table_name='attempts')
    op.drop_index('ix_attempts_quiz_id', table_name='attempts')
    op.drop_table('attempts')
    op.drop_index('ix_quizzes_created_by', table_name='quizzes')
    op.drop_index('ix_quizzes_org_id', table_name='quizzes')
    op.drop_table('quizzes')

    print("  Dropping user tables...")
    op.drop_index('ix_entitlements_uid', table_name='entitlements')
    op.drop_table('entitlements')
    op.drop_table('user_profiles')
    op.drop_index('ix_users_created_at', table_name='users')
    op.drop_table('users')

    print("  Dropping consent tables...")
    op.drop_index('ix_consent_invites_status_expires', table_name='consent_invites')
    op.drop_index('ix_consent_invites_student_id', table_name='consent_invites')
    op.drop_table('consent_invites')
    op.drop_index('ix_guardian_consents_status_expires', table_name='guardian_consents')
    op.drop_index('ix_guardian_consents_org_id', table_name='guardian_consents')
    op.drop_index('ix_guardian_consents_student_id', table_name='guardian_consents')
    op.drop_table('guardian_consents')

    print("  Dropping orgs tables...")
    op.drop_table('org_settings')
    op.drop_table('orgs')

    print("  Downgrade complete!")
