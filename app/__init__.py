"""
                Restaurant Ordering API

Order intake backend for a restaurant ordering site: customer identity
resolution, rolling customer statistics, an atomic order ledger and
promotional discount codes.
"""

__version__ = "1.0.0"
