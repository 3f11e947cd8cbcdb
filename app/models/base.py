"""Shared table metadata."""

from sqlalchemy import MetaData

# All tables register on one MetaData so foreign keys resolve for
# create_all and Alembic autogenerate.
metadata = MetaData()
