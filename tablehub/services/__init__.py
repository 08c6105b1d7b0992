"""
Services Package

Domain services (orders, access grants, credentials, tokens, analytics)
and the pluggable infrastructure they depend on (notifications,
revocation store, rate limiter), each with a mock/memory implementation
for development and a real one for staging and production.
"""

from tablehub.services.access_grants import AccessGrantRegistry, GrantInvitation
from tablehub.services.analytics import AnalyticsAggregator, growth_percentage
from tablehub.services.credentials import CredentialService
from tablehub.services.orders import OrderEngine
from tablehub.services.scope import CallerScope
from tablehub.services.tokens import TokenClaims, TokenService

__all__ = [
    "AccessGrantRegistry",
    "AnalyticsAggregator",
    "CallerScope",
    "CredentialService",
    "GrantInvitation",
    "OrderEngine",
    "TokenClaims",
    "TokenService",
    "growth_percentage",
]
