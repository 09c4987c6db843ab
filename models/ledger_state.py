"""
LedgerState model - configuration and running totals of one subscription ledger.

Each row is an independent ledger. Operations always address a ledger by id;
there is no implicit default ledger.
"""
from typing import List

from sqlalchemy import Column, Integer, String, DateTime, func

from .base import Base
from .columns import TokenAmount


class LedgerState(Base):
     """
     Mutable ledger configuration (owner, fee, token, collector) and the
     collected total. Fee and token stay NULL until the owner configures them.
     """
     __tablename__ = "ledger_states"

     id = Column(Integer, primary_key=True, autoincrement=True)
     owner = Column(String(128), nullable=False)
     fee_collector = Column(String(128), nullable=False)
     fee_amount = Column(TokenAmount(), nullable=True)  # per period, token base units
     token_identifier = Column(String(128), nullable=True)
     total_collected = Column(TokenAmount(), nullable=False, default=0)  # sum of observed deltas
     custody_account = Column(String(128), nullable=False, unique=True)  # ledger's holder id at the token
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     def __repr__(self):
          return (
               f"<LedgerState(id={self.id}, owner='{self.owner}', "
               f"fee={self.fee_amount}, token='{self.token_identifier}')>"
          )

     @property
     def missing_settings(self) -> List[str]:
          return [
               name
               for name, value in (("fee", self.fee_amount), ("token", self.token_identifier))
               if value is None
          ]

     @property
     def is_configured(self) -> bool:
          """Payments are accepted only once both fee and token are set."""
          return not self.missing_settings
