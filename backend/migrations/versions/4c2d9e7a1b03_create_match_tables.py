"""create match, move, dispute, player_profile and deadline_warning tables

Revision ID: 4c2d9e7a1b03
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9e7a1b03'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'match',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('player_a_id', sa.String(length=255), nullable=False),
        sa.Column('player_b_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=True),
        sa.Column('current_actor_id', sa.String(length=255), nullable=True),
        sa.Column('attacker_id', sa.String(length=255), nullable=True),
        sa.Column('defender_id', sa.String(length=255), nullable=True),
        sa.Column('player_a_letters', sa.String(length=5), nullable=False, server_default=''),
        sa.Column('player_b_letters', sa.String(length=5), nullable=False, server_default=''),
        sa.Column('current_trick_name', sa.String(length=500), nullable=True),
        sa.Column('current_evidence_ref', sa.String(length=500), nullable=True),
        sa.Column('response_evidence_ref', sa.String(length=500), nullable=True),
        sa.Column('attacker_vote', sa.String(length=16), nullable=True),
        sa.Column('defender_vote', sa.String(length=16), nullable=True),
        sa.Column('player_a_dispute_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('player_b_dispute_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('round_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('deadline_at', sa.Float(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('updated_at', sa.Float(), nullable=False),
        sa.Column('completed_at', sa.Float(), nullable=True),
        sa.Column('winner_id', sa.String(length=255), nullable=True),
        sa.Column('forfeit_reason', sa.String(length=32), nullable=True),
        sa.Column('processed_keys', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('match') as batch_op:
        batch_op.create_index('ix_match_player_a_id', ['player_a_id'])
        batch_op.create_index('ix_match_player_b_id', ['player_b_id'])
        batch_op.create_index('ix_match_status_deadline', ['status', 'deadline_at'])
        batch_op.create_index('ix_match_status_created', ['status', 'created_at'])

    op.create_table(
        'move',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.String(length=32), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('actor_id', sa.String(length=255), nullable=False),
        sa.Column('trick_name', sa.String(length=500), nullable=True),
        sa.Column('evidence_ref', sa.String(length=500), nullable=True),
        sa.Column('result', sa.String(length=16), nullable=True),
        sa.Column('letter', sa.String(length=1), nullable=True),
        sa.Column('judged_against_id', sa.String(length=255), nullable=True),
        sa.Column('round_number', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'seq', name='uq_move_match_seq'),
    )
    with op.batch_alter_table('move') as batch_op:
        batch_op.create_index('ix_move_match_id', ['match_id'])

    op.create_table(
        'dispute',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.String(length=32), nullable=False),
        sa.Column('move_id', sa.Integer(), nullable=False),
        sa.Column('filed_by', sa.String(length=255), nullable=False),
        sa.Column('against_player_id', sa.String(length=255), nullable=False),
        sa.Column('original_result', sa.String(length=16), nullable=False),
        sa.Column('verdict', sa.String(length=16), nullable=True),
        sa.Column('resolved_by', sa.String(length=255), nullable=True),
        sa.Column('resolved_at', sa.Float(), nullable=True),
        sa.Column('penalty_applied_to', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.ForeignKeyConstraint(['move_id'], ['move.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('dispute') as batch_op:
        batch_op.create_index('ix_dispute_match_id', ['match_id'])

    op.create_table(
        'player_profile',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('dispute_penalties', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'deadline_warning',
        sa.Column('match_id', sa.String(length=32), nullable=False),
        sa.Column('warned_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('match_id'),
    )


def downgrade():
    op.drop_table('deadline_warning')
    op.drop_table('player_profile')
    with op.batch_alter_table('dispute') as batch_op:
        batch_op.drop_index('ix_dispute_match_id')
    op.drop_table('dispute')
    with op.batch_alter_table('move') as batch_op:
        batch_op.drop_index('ix_move_match_id')
    op.drop_table('move')
    with op.batch_alter_table('match') as batch_op:
        batch_op.drop_index('ix_match_status_created')
        batch_op.drop_index('ix_match_status_deadline')
        batch_op.drop_index('ix_match_player_b_id')
        batch_op.drop_index('ix_match_player_a_id')
    op.drop_table('match')
