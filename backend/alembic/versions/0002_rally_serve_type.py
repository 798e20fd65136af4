"""Record the serve type on each rally"""

from alembic import op
import sqlalchemy as sa

revision = "0002_rally_serve_type"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("rally", sa.Column("s_type", sa.String(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("rally") as batch:
        batch.drop_column("s_type")
