"""
API Routers

Every router is mounted under API_PREFIX by tablehub.main.
"""

from tablehub.routes import admin, auth, menu, orders, vendor_access, vendors

all_routers = [
    auth.router,
    vendor_access.router,
    orders.router,
    admin.router,
    menu.router,
    vendors.router,
]

__all__ = ["all_routers"]
