"""
Caller Scope

Which vendors an authenticated caller may read:
    - general admin: every vendor
    - multi-vendor admin: vendors with a live access grant
    - vendor: itself
"""

from dataclasses import dataclass
from typing import Optional

from tablehub.models import AccountRole


@dataclass(frozen=True)
class CallerScope:
    role: AccountRole
    account_id: str
    # None means unrestricted
    vendor_ids: Optional[frozenset[str]] = None

    @classmethod
    def unrestricted(cls, role: AccountRole, account_id: str) -> "CallerScope":
        return cls(role=role, account_id=account_id, vendor_ids=None)

    @classmethod
    def for_vendors(cls, role: AccountRole, account_id: str, vendor_ids) -> "CallerScope":
        return cls(role=role, account_id=account_id, vendor_ids=frozenset(vendor_ids))

    @property
    def is_unrestricted(self) -> bool:
        return self.vendor_ids is None

    def allows(self, vendor_id: str) -> bool:
        return self.vendor_ids is None or vendor_id in self.vendor_ids
