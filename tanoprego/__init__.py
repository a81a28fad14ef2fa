"""
Tá no Prego! - Source Package

A debt book for small shops: the shopkeeper registers customers,
writes down what each one owes, and crosses items off when paid.

DESIGN PRINCIPLES:
1. Every mutation is saved immediately
2. Fail early, fail visibly
3. AI only suggests the entry; the ledger applies it deterministically
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "2.2.0"
__author__ = "Tá no Prego Team"
