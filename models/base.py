import re

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, declared_attr


# Deterministic constraint names so Alembic migrations match the models
NAMING_CONVENTION = {
     "ix": "ix_%(table_name)s_%(column_0_name)s",
     "uq": "uq_%(table_name)s_%(column_0_name)s",
     "ck": "ck_%(table_name)s_%(constraint_name)s",
     "fk": "fk_%(table_name)s_%(column_0_name)s",
     "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
     """
     Base class for all SQLAlchemy models.
     Provides common configuration and mixins.
     """
     metadata = MetaData(naming_convention=NAMING_CONVENTION)

     @declared_attr.directive
     def __tablename__(cls) -> str:
          """
          Automatically generate table name from class name.
          Example: SubscriberAccount -> subscriber_accounts
          """
          name = re.sub(r'(?<!^)(?=[A-Z])', '_', cls.__name__).lower()
          if name.endswith('y'):
               return name[:-1] + 'ies'
          elif name.endswith('s'):
               return name + 'es'
          return name + 's'

     def as_dict(self) -> dict:
          """Column values keyed by column name (used for snapshots and logging)."""
          return {column.key: getattr(self, column.key) for column in self.__table__.columns}
