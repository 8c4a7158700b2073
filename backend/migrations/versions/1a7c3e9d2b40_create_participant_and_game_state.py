"""create participant and game_state tables

Revision ID: 1a7c3e9d2b40
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    # ensure_schema() may already have created the tables at startup
    if 'participant' not in existing_tables:
        op.create_table(
            'participant',
            sa.Column('identity', sa.String(length=128), primary_key=True),
            sa.Column('contact_email', sa.String(length=254), nullable=False),
            sa.Column('email_key', sa.String(length=254), nullable=False),
            sa.Column('contact_phone', sa.String(length=32), nullable=True),
            sa.Column('box_choice', sa.Integer(), nullable=False),
            sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('outcome_correct', sa.Boolean(), nullable=True),
            sa.Column('is_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('prize_location', sa.String(length=128), nullable=True),
            sa.Column('prize_code', sa.String(length=32), nullable=True),
            sa.Column('sync_pending', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('revision', sa.Integer(), nullable=False, server_default='1'),
        )
        op.create_index('ix_participant_email_key', 'participant', ['email_key'], unique=True)
        op.create_index('ix_participant_sync_pending', 'participant', ['sync_pending'])
        op.create_index('ix_participant_created_at', 'participant', ['created_at'])

    if 'game_state' not in existing_tables:
        op.create_table(
            'game_state',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('phase', sa.String(length=16), nullable=False, server_default='collecting'),
            sa.Column('correct_box', sa.Integer(), nullable=True),
            sa.Column('revealed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('launched_at', sa.DateTime(timezone=True), nullable=True),
        )


def downgrade():
    op.drop_table('game_state')
    op.drop_index('ix_participant_created_at', table_name='participant')
    op.drop_index('ix_participant_sync_pending', table_name='participant')
    op.drop_index('ix_participant_email_key', table_name='participant')
    op.drop_table('participant')
