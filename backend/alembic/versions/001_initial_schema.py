"""initial schema

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_sqlite = bind.dialect.name == 'sqlite'

    timestamp_default = sa.text("(datetime('now'))") if is_sqlite else sa.text('now()')

    # Users: password accounts and Google-linked accounts
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('username', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('google_id', sa.String(length=255), nullable=True),
        sa.Column('profile_picture', sa.String(length=2048), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('google_id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_google_id', 'users', ['google_id'])

    # Typing test results, keyed by username
    op.create_table(
        'test_results',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('username', sa.String(length=20), nullable=False),
        sa.Column('wpm', sa.Float(), nullable=False),
        sa.Column('cpm', sa.Float(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('total_time', sa.Integer(), nullable=False),
        sa.Column('difficulty', sa.String(length=10), nullable=False),
        sa.Column('total_characters', sa.Integer(), nullable=False),
        sa.Column('correct_characters', sa.Integer(), nullable=False),
        sa.Column('incorrect_characters', sa.Integer(), nullable=False),
        sa.Column('test_text', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.ForeignKeyConstraint(['username'], ['users.username'], onupdate='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("difficulty IN ('easy', 'medium', 'hard')", name='ck_test_results_difficulty')
    )
    op.create_index('ix_test_results_id', 'test_results', ['id'])
    op.create_index('ix_test_results_username', 'test_results', ['username'])
    op.create_index('ix_test_results_created_at', 'test_results', ['created_at'])
    # Composite index for per-user history queries
    op.create_index('idx_test_results_username_date', 'test_results', ['username', 'created_at'])


def downgrade() -> None:
    op.drop_table('test_results')
    op.drop_table('users')
