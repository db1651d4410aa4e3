"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Organizations table
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('base_url', sa.Text(), nullable=True),
        sa.Column('api_key', sa.String(length=128), nullable=False),
        sa.Column('settings', JSONB, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('domain')
    )

    # Page schemas table (schema_json is plain JSON to keep key order)
    op.create_table(
        'page_schemas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('page_url', sa.Text(), nullable=False),
        sa.Column('schema_json', sa.JSON(), nullable=False),
        sa.Column('content_hash', sa.Text(), nullable=True),
        sa.Column('cache_version', sa.Integer(), nullable=False),
        sa.Column('source_mode', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.UniqueConstraint('organization_id', 'page_url', name='uq_page_schema_org_url'),
        sa.CheckConstraint(
            "source_mode IN ('generation', 'projection', 'external')",
            name='ck_page_schema_source_mode'
        ),
        sa.CheckConstraint('cache_version >= 1', name='ck_page_schema_cache_version')
    )

    # Drift signals table
    op.create_table(
        'drift_signals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('page_url', sa.Text(), nullable=False),
        sa.Column('content_hash', sa.Text(), nullable=False),
        sa.Column('previous_hash', sa.Text(), nullable=True),
        sa.Column('drift_detected', sa.Boolean(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('signals', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], )
    )
    op.create_index(
        'ix_drift_signals_org_url_processed',
        'drift_signals',
        ['organization_id', 'page_url', 'processed']
    )


def downgrade() -> None:
    op.drop_index('ix_drift_signals_org_url_processed', table_name='drift_signals')
    op.drop_table('drift_signals')
    op.drop_table('page_schemas')
    op.drop_table('organizations')
