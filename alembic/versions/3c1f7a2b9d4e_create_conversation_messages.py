"""create_conversation_messages

Revision ID: 3c1f7a2b9d4e
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c1f7a2b9d4e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('conversation_messages',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('tenant_id', sa.String(length=128), nullable=False),
    sa.Column('session_id', sa.String(length=128), nullable=True),
    sa.Column('role', sa.String(length=16), nullable=False),
    sa.Column('content', sa.Text(), nullable=False),
    sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    schema='taskpilot'
    )
    op.create_index('ix_conversation_messages_tenant_session', 'conversation_messages', ['tenant_id', 'session_id', 'id'], unique=False, schema='taskpilot')


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_conversation_messages_tenant_session', table_name='conversation_messages', schema='taskpilot')
    op.drop_table('conversation_messages', schema='taskpilot')
