# costbasis/models/__init__.py

"""
Centralizes ORM model imports so Base.metadata knows every table.
"""

from costbasis.database import Base

from .transaction import LedgerTransaction
