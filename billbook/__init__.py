"""
Household Bills - Source Package

A local-first bill tracker for one person or a small household.
Bills are laid out on a monthly calendar, totalled per month and
kept in a durable local snapshot.

DESIGN PRINCIPLES:
1. One store object owns all state
2. Every mutation is written through to local storage
3. Views are recomputed, never cached
4. Storage failures never lose the in-memory session
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Bills Team"
