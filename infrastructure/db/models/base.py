"""
Shared declarative base for the installment billing tables.
"""
from sqlalchemy import MetaData
from sqlalchemy.orm import registry

# Named constraints for migrations
metadata = MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
})

mapper_registry = registry(metadata=metadata)
Base = mapper_registry.generate_base()
