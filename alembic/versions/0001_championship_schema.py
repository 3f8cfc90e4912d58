"""championship schema: seasons, tournaments, blind levels, enrollments, removals

Revision ID: 0001_championship_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '0001_championship_schema'
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create championship tables"""
    op.create_table(
        'players',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('nickname', sa.String(50), nullable=False, index=True),
        sa.Column('first_name', sa.String(50), nullable=True),
        sa.Column('last_name', sa.String(50), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'seasons',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('points_first', sa.Integer, nullable=False, server_default='1500'),
        sa.Column('points_second', sa.Integer, nullable=False, server_default='1000'),
        sa.Column('points_third', sa.Integer, nullable=False, server_default='700'),
        sa.Column('points_fourth', sa.Integer, nullable=False, server_default='500'),
        sa.Column('points_fifth', sa.Integer, nullable=False, server_default='400'),
        sa.Column('points_sixth', sa.Integer, nullable=False, server_default='300'),
        sa.Column('points_seventh', sa.Integer, nullable=False, server_default='200'),
        sa.Column('points_eighth', sa.Integer, nullable=False, server_default='200'),
        sa.Column('points_ninth', sa.Integer, nullable=False, server_default='200'),
        sa.Column('points_tenth', sa.Integer, nullable=False, server_default='200'),
        sa.Column('points_eleventh', sa.Integer, nullable=False, server_default='100', comment='ranks 11-15'),
        sa.Column('points_sixteenth', sa.Integer, nullable=False, server_default='50', comment='ranks 16+'),
        sa.Column('detailed_points_config', JSON_TYPE, nullable=True),
        sa.Column('elimination_points', sa.Integer, nullable=False, server_default='50'),
        sa.Column('bust_elimination_bonus', sa.Integer, nullable=False, server_default='25'),
        sa.Column('leader_killer_bonus', sa.Integer, nullable=False, server_default='25'),
        sa.Column('free_rebuys_count', sa.Integer, nullable=False, server_default='2'),
        sa.Column('rebuy_penalty_tier1', sa.Integer, nullable=False, server_default='-50'),
        sa.Column('rebuy_penalty_tier2', sa.Integer, nullable=False, server_default='-100'),
        sa.Column('rebuy_penalty_tier3', sa.Integer, nullable=False, server_default='-150'),
        sa.Column('recave_penalty_tiers', JSON_TYPE, nullable=True),
        sa.Column('total_tournaments_count', sa.Integer, nullable=True),
        sa.Column('best_tournaments_count', sa.Integer, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'tournaments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('season_id', sa.String(36), sa.ForeignKey('seasons.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('type', sa.String(20), nullable=False, server_default='CHAMPIONSHIP'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PLANNED', index=True),
        sa.Column('timer_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('timer_paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('timer_elapsed_seconds', sa.Integer, nullable=False, server_default='0'),
        sa.Column('current_level', sa.Integer, nullable=False, server_default='1'),
        sa.Column('rebuy_end_level', sa.Integer, nullable=True, comment='null = rebuys never close'),
        sa.Column('light_rebuy_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('season_leader_at_start_id', sa.String(36), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'blind_levels',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tournament_id', sa.String(36), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('level', sa.Integer, nullable=False),
        sa.Column('small_blind', sa.Integer, nullable=False, server_default='0'),
        sa.Column('big_blind', sa.Integer, nullable=False, server_default='0'),
        sa.Column('ante', sa.Integer, nullable=False, server_default='0'),
        sa.Column('duration', sa.Integer, nullable=False, comment='minutes'),
        sa.Column('is_break', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('tournament_id', 'level', name='uq_blind_level_tournament_level'),
    )

    op.create_table(
        'tournament_players',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tournament_id', sa.String(36), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('player_id', sa.String(36), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('rebuys_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('light_rebuy_used', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('penalty_points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('eliminations_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('bust_eliminations', sa.Integer, nullable=False, server_default='0'),
        sa.Column('leader_kills', sa.Integer, nullable=False, server_default='0'),
        sa.Column('final_rank', sa.Integer, nullable=True),
        sa.Column('rank_points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('elimination_points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('bonus_points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_points', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('tournament_id', 'player_id', name='uq_tournament_player'),
        sa.UniqueConstraint('tournament_id', 'final_rank', name='uq_tournament_final_rank'),
    )

    op.create_table(
        'eliminations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tournament_id', sa.String(36), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('eliminator_id', sa.String(36), sa.ForeignKey('tournament_players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('eliminated_id', sa.String(36), sa.ForeignKey('tournament_players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rank', sa.Integer, nullable=False),
        sa.Column('level', sa.Integer, nullable=False),
        sa.Column('is_leader_kill', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        'bust_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tournament_id', sa.String(36), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('eliminated_id', sa.String(36), sa.ForeignKey('tournament_players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('killer_id', sa.String(36), sa.ForeignKey('tournament_players.id', ondelete='SET NULL'), nullable=True),
        sa.Column('level', sa.Integer, nullable=False),
        sa.Column('recave_applied', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    # Undo looks up the newest event of a tournament
    op.create_index('ix_eliminations_tournament_created', 'eliminations', ['tournament_id', 'created_at'])
    op.create_index('ix_bust_events_tournament_created', 'bust_events', ['tournament_id', 'created_at'])


def downgrade() -> None:
    """Drop championship tables"""
    op.drop_index('ix_bust_events_tournament_created')
    op.drop_index('ix_eliminations_tournament_created')
    op.drop_table('bust_events')
    op.drop_table('eliminations')
    op.drop_table('tournament_players')
    op.drop_table('blind_levels')
    op.drop_table('tournaments')
    op.drop_table('seasons')
    op.drop_table('players')
