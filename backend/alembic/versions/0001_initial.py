from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _touch_columns():
    cols = []
    for prefix in ("s", "r", "a", "d"):
        cols += [
            sa.Column(f"{prefix}_player_id", sa.String(), nullable=True),
            sa.Column(f"{prefix}_no", sa.Integer(), nullable=True),
            sa.Column(f"{prefix}_code", sa.Integer(), nullable=True),
        ]
    for n in (1, 2, 3):
        cols += [
            sa.Column(f"b{n}_player_id", sa.String(), nullable=True),
            sa.Column(f"b{n}_no", sa.Integer(), nullable=True),
        ]
    cols += [
        sa.Column("b_code", sa.Integer(), nullable=True),
        sa.Column("setter_player_id", sa.String(), nullable=True),
        sa.Column("pass_destination", sa.String(), nullable=True),
        sa.Column("pass_code", sa.Integer(), nullable=True),
        sa.Column("a_pass_quality", sa.Integer(), nullable=True),
        sa.Column("kill_type", sa.String(), nullable=True),
    ]
    return cols


def upgrade():
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("home_name", sa.String(), nullable=False),
        sa.Column("away_name", sa.String(), nullable=False),
        sa.Column("first_serve_side", sa.String(), nullable=False, server_default="CASA"),
        sa.Column("match_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "match_player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=False),
        sa.Column("side", sa.String(), nullable=False),
        sa.Column("jersey_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("position", sa.String(), nullable=True),
        sa.Column("team_player_id", sa.String(), nullable=True),
        sa.UniqueConstraint(
            "match_id", "side", "jersey_number", name="uq_match_player_match_side_jersey"
        ),
    )
    op.create_index(
        "ix_match_player_team_player_id", "match_player", ["team_player_id"]
    )
    op.create_table(
        "lineup",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=False),
        sa.Column("set_no", sa.Integer(), nullable=False),
        sa.Column("side", sa.String(), nullable=False),
        *[
            sa.Column(f"rot{i}", sa.String(), sa.ForeignKey("match_player.id"), nullable=True)
            for i in range(1, 7)
        ],
        sa.UniqueConstraint("match_id", "set_no", "side", name="uq_lineup_match_set_side"),
    )
    op.create_table(
        "rally",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=False),
        sa.Column("set_no", sa.Integer(), nullable=False),
        sa.Column("rally_no", sa.Integer(), nullable=False),
        sa.Column("phase", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("serve_side", sa.String(), nullable=False),
        sa.Column("serve_rot", sa.Integer(), nullable=False),
        sa.Column("recv_side", sa.String(), nullable=False),
        sa.Column("recv_rot", sa.Integer(), nullable=False),
        sa.Column("point_won_by", sa.String(), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        *_touch_columns(),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "match_id", "set_no", "rally_no", "phase", name="uq_rally_match_set_rally_phase"
        ),
    )
    op.create_index("ix_rally_match_id_set_no", "rally", ["match_id", "set_no"])


def downgrade():
    op.drop_index("ix_rally_match_id_set_no", table_name="rally")
    op.drop_table("rally")
    op.drop_table("lineup")
    op.drop_index("ix_match_player_team_player_id", table_name="match_player")
    op.drop_table("match_player")
    op.drop_table("match")
