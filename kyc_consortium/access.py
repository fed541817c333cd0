"""
Access Control Module

Capability checks shared by every consortium operation, and the admin
controller that owns bank membership. The caller identity is supplied by the
surrounding environment; nothing here authenticates it.
"""

from typing import Optional

from .banks import Bank, BankRegistry
from .errors import Unauthorized, NotEligible


class AccessControl:
    """Maps a caller identity to the fixed admin or to a registered bank"""

    def __init__(self, admin_address: str, banks: BankRegistry):
        self._admin_address = admin_address
        self.banks = banks

    @property
    def admin_address(self) -> str:
        return self._admin_address

    def is_admin(self, caller: Optional[str]) -> bool:
        return caller is not None and caller == self._admin_address

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise Unauthorized(f"{caller} is not the consortium admin", subject=caller)

    def require_bank(self, caller: str) -> Bank:
        """Caller must be a registered bank (BankNotFound otherwise)"""
        return self.banks.require_bank(caller)

    def require_eligible_bank(self, caller: str) -> Bank:
        """Caller must be a registered bank that still holds voting rights"""
        bank = self.require_bank(caller)
        if not bank.is_eligible:
            raise NotEligible(f"Bank {caller} is not eligible", subject=caller)
        return bank


class AdminController:
    """The single privileged caller: adds, removes and reinstates banks"""

    def __init__(self, access: AccessControl, banks: BankRegistry):
        self.access = access
        self.banks = banks

    def add_bank(self, caller: str, address: str, name: str, registration_number: str) -> Bank:
        self.access.require_admin(caller)
        return self.banks.add_bank(address, name, registration_number, performed_by=caller)

    def remove_bank(self, caller: str, address: str) -> Bank:
        self.access.require_admin(caller)
        return self.banks.remove_bank(address, performed_by=caller)

    def set_eligibility(self, caller: str, address: str, value: bool) -> Bank:
        self.access.require_admin(caller)
        return self.banks.set_eligibility(address, value, performed_by=caller)
