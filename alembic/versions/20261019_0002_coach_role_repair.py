"""default missing or unknown coach roles to coach

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:02:00
"""

from alembic import op


revision = '20261019_0002'
down_revision = '20261019_0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Case-sensitive: a mis-cased 'Admin' becomes 'coach'.
    op.execute(
        "UPDATE coaches SET role = 'coach' "
        "WHERE role IS NULL OR role NOT IN ('admin', 'coach')"
    )


def downgrade() -> None:
    # Data repair only; the previous values are not recoverable.
    pass
