"""
Column types shared by the ledger models.
"""
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class TokenAmount(TypeDecorator):
     """
     Integer amount in token base units, stored as decimal text.

     Token amounts routinely exceed 64 bits, which neither SQLite INTEGER
     nor BIGINT can hold. Amounts are never compared or summed in SQL.
     """
     impl = String
     cache_ok = True

     def __init__(self):
          super().__init__(length=80)

     def process_bind_param(self, value, dialect):
          if value is None:
               return None
          if isinstance(value, bool) or not isinstance(value, int):
               raise TypeError(f"Token amounts must be integers, got {value!r}")
          return str(value)

     def process_result_value(self, value, dialect):
          if value is None:
               return None
          return int(value)
