"""
                TableHub Restaurant Platform

A multi-tenant backend for dine-in restaurant ordering: vendors run
their menus and orders, customers order from the table, and admins
follow the numbers across the vendors they are allowed to see.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
