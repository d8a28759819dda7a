"""Initial schema: users, properties, images, inquiries, favorites

Revision ID: 3c1f7a9e2b10
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1f7a9e2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from the current models."""
    from immobilien.database import Base
    from immobilien import models  # noqa: F401

    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    from immobilien.database import Base
    from immobilien import models  # noqa: F401

    Base.metadata.drop_all(bind=op.get_bind())
