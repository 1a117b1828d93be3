"""Initial schema for the Pokedex catalog.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "pokemon",
        sa.Column("id", sa.String(36), primary_key=True),
        # Identity keys
        sa.Column("pokeapi_id", sa.Integer(), nullable=True),
        sa.Column("national_dex_number", sa.Integer(), nullable=True),
        sa.Column("slug", sa.String(100), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), default=""),
        # Media
        sa.Column("img_url", sa.String(500), nullable=False),
        sa.Column("sprite_url", sa.String(500), default=""),
        sa.Column("cry_url", sa.String(500), default=""),
        sa.Column("description", sa.Text(), default=""),
        # Measurements
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("base_experience", sa.Integer(), default=0),
        # Battle data
        sa.Column("types_json", sa.Text(), default="[]"),
        sa.Column("abilities_json", sa.Text(), default="[]"),
        sa.Column("base_stats_json", sa.Text(), default="{}"),
        sa.Column("stats_total", sa.Integer(), default=0),
        # Species data
        sa.Column("generation", sa.String(50), default=""),
        sa.Column("habitat", sa.String(50), default=""),
        sa.Column("shape", sa.String(50), default=""),
        sa.Column("color", sa.String(50), default=""),
        sa.Column("growth_rate", sa.String(50), default=""),
        sa.Column("egg_groups_json", sa.Text(), default="[]"),
        sa.Column("capture_rate", sa.Integer(), nullable=True),
        sa.Column("base_happiness", sa.Integer(), nullable=True),
        sa.Column("hatch_counter", sa.Integer(), nullable=True),
        sa.Column("gender_rate", sa.Integer(), nullable=True),
        sa.Column("is_legendary", sa.Boolean(), default=False),
        sa.Column("is_mythical", sa.Boolean(), default=False),
        sa.Column("is_baby", sa.Boolean(), default=False),
        sa.Column("regions_json", sa.Text(), default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("pokeapi_id"),
        sa.UniqueConstraint("slug"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_pokemon_national_dex_number", "pokemon", ["national_dex_number"])
    op.create_index("ix_pokemon_cry_url", "pokemon", ["cry_url"])
    op.create_index("ix_pokemon_stats_total", "pokemon", ["stats_total"])


def downgrade() -> None:
    op.drop_index("ix_pokemon_stats_total", table_name="pokemon")
    op.drop_index("ix_pokemon_cry_url", table_name="pokemon")
    op.drop_index("ix_pokemon_national_dex_number", table_name="pokemon")
    op.drop_table("pokemon")
