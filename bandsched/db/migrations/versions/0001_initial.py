from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def _is_postgres():
    return op.get_bind().dialect.name == 'postgresql'

def upgrade():
    if _is_postgres():
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.create_table(
        'venues',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String())
    )
    op.create_table(
        'rehearsals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.String(), nullable=False),
        sa.Column('venue_id', sa.Integer(), sa.ForeignKey('venues.id')),
        sa.Column('title', sa.String(100), nullable=False, server_default=''),
        sa.Column('description', sa.String(500), nullable=False, server_default=''),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('time_zone', sa.String()),
        sa.Column('frequency', sa.String()),
        sa.Column('day_of_week', sa.Integer()),
        sa.Column('interval', sa.Integer()),
        sa.Column('recurrence_end', sa.DateTime(timezone=True)),
        sa.Column('setlist_id', sa.String()),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('end_at > start_at', name='rehearsals_end_after_start')
    )
    op.create_index('ix_rehearsals_group_id', 'rehearsals', ['group_id'])
    op.create_index('ix_rehearsals_venue_id', 'rehearsals', ['venue_id'])
    op.create_table(
        'rehearsal_attendees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rehearsal_id', sa.Integer(), sa.ForeignKey('rehearsals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('response_time', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('rehearsal_id', 'user_id')
    )
    # Overlapping bookings at one venue are rejected by the database itself
    if _is_postgres():
        op.execute(
            "ALTER TABLE rehearsals ADD CONSTRAINT rehearsals_venue_no_overlap "
            "EXCLUDE USING gist (venue_id WITH =, tstzrange(start_at, end_at) WITH &&)"
        )

def downgrade():
    if _is_postgres():
        op.execute("ALTER TABLE rehearsals DROP CONSTRAINT IF EXISTS rehearsals_venue_no_overlap")
    op.drop_table('rehearsal_attendees')
    op.drop_index('ix_rehearsals_venue_id', table_name='rehearsals')
    op.drop_index('ix_rehearsals_group_id', table_name='rehearsals')
    op.drop_table('rehearsals')
    op.drop_table('venues')
