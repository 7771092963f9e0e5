"""Initial schema: products, flows, workflow map, metric snapshots, targets, health config + flags

Revision ID: 3f9a1c7e2d40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7e2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table('flows',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_type', sa.Text(), nullable=False),
        sa.Column('frequency', sa.Text(), nullable=True),
        sa.Column('channels', sa.JSON(), nullable=False),
        sa.Column('live', sa.Boolean(), nullable=False),
        sa.Column('sto', sa.Boolean(), nullable=False),
        sa.Column('iterable_id', sa.Text(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('max_frequency_per_user_days', sa.Integer(), nullable=True),
        sa.Column('suppression_rules', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_flow_product_name'),
    )
    op.create_index('ix_flows_product_id', 'flows', ['product_id'])
    op.create_index('ix_flows_iterable_id', 'flows', ['iterable_id'])

    op.create_table('workflow_product_map',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.Text(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workflow_id'),
    )

    op.create_table('metric_snapshots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.Text(), nullable=False),
        sa.Column('flow_id', sa.Integer(), nullable=True),
        sa.Column('channel', sa.Text(), nullable=False),
        sa.Column('period_type', sa.Text(), nullable=False),
        sa.Column('period_start_date', sa.Date(), nullable=False),
        sa.Column('sends', sa.Integer(), nullable=True),
        sa.Column('opens', sa.Integer(), nullable=True),
        sa.Column('clicks', sa.Integer(), nullable=True),
        sa.Column('unsubs', sa.Integer(), nullable=True),
        sa.Column('bounces', sa.Integer(), nullable=True),
        sa.Column('complaints', sa.Integer(), nullable=True),
        sa.Column('delivered', sa.Integer(), nullable=True),
        sa.Column('open_rate', sa.Float(), nullable=True),
        sa.Column('click_rate', sa.Float(), nullable=True),
        sa.Column('ctor', sa.Float(), nullable=True),
        sa.Column('unsub_rate', sa.Float(), nullable=True),
        sa.Column('bounce_rate', sa.Float(), nullable=True),
        sa.Column('complaint_rate', sa.Float(), nullable=True),
        sa.Column('import_batch_id', sa.Text(), nullable=True),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['flow_id'], ['flows.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workflow_id', 'channel', 'period_type', 'period_start_date',
                            name='uq_metric_snapshot_natural_key'),
    )
    op.create_index('ix_metric_snapshots_workflow_id', 'metric_snapshots', ['workflow_id'])

    op.create_table('kpi_targets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('metric_name', sa.Text(), nullable=False),
        sa.Column('workflow_id', sa.Text(), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('channel', sa.Text(), nullable=True),
        sa.Column('period_type', sa.Text(), nullable=True),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date(), nullable=True),
        sa.Column('target_value', sa.Float(), nullable=False),
        sa.Column('amber_floor', sa.Float(), nullable=True),
        sa.Column('red_floor', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kpi_targets_metric_name', 'kpi_targets', ['metric_name'])

    op.create_table('health_config',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('amber_floor', sa.Float(), nullable=False),
        sa.Column('wow_amber_drop', sa.Float(), nullable=False),
        sa.Column('wow_red_drop', sa.Float(), nullable=False),
        sa.Column('red_floor_factor', sa.Float(), nullable=True),
        sa.Column('rollup_strategy', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('health_flags',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.Text(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('channel', sa.Text(), nullable=False),
        sa.Column('period_type', sa.Text(), nullable=False),
        sa.Column('period_start_date', sa.Date(), nullable=False),
        sa.Column('metric_name', sa.Text(), nullable=False),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('target', sa.Float(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('delta_wow', sa.Float(), nullable=True),
        sa.Column('delta_mom', sa.Float(), nullable=True),
        sa.Column('computed_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workflow_id', 'channel', 'period_type', 'period_start_date', 'metric_name',
                            name='uq_health_flag_natural_key'),
    )
    op.create_index('ix_health_flags_workflow_id', 'health_flags', ['workflow_id'])
    op.create_index('ix_health_flags_period', 'health_flags', ['period_type', 'period_start_date', 'status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_health_flags_period', 'health_flags')
    op.drop_index('ix_health_flags_workflow_id', 'health_flags')
    op.drop_table('health_flags')
    op.drop_table('health_config')
    op.drop_index('ix_kpi_targets_metric_name', 'kpi_targets')
    op.drop_table('kpi_targets')
    op.drop_index('ix_metric_snapshots_workflow_id', 'metric_snapshots')
    op.drop_table('metric_snapshots')
    op.drop_table('workflow_product_map')
    op.drop_index('ix_flows_iterable_id', 'flows')
    op.drop_index('ix_flows_product_id', 'flows')
    op.drop_table('flows')
    op.drop_table('products')
