from abc import ABC, abstractmethod
from typing import Optional, List
from core.entities.account import Account, AccountPatch


class AccountRepository(ABC):
    @abstractmethod
    def create_account(self, email: str, password_hash: str, name: str, phone: str,
                       signup_origin: Optional[str] = None) -> Account:
        """Insert-if-absent on the normalized email; raises DuplicateEmailError."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Account]:...

    @abstractmethod
    def get_by_id(self, account_id: str) -> Optional[Account]:...

    @abstractmethod
    def list_all(self) -> List[Account]:...

    @abstractmethod
    def record_login(self, account_id: str, origin: Optional[str]) -> None:...

    @abstractmethod
    def mutate(self, account_id: str, patch: AccountPatch) -> Account:
        """Applies patch and bumps updated_at; raises NotFoundError.

        Returns the full internal record, password_hash included. Use cases
        hand out account_view(...) of it, never the record itself.
        """

    @abstractmethod
    def grant_admin_if_none_exists(self, account_id: str) -> bool:
        """Atomically promotes account_id only while no admin exists."""

    @abstractmethod
    def delete(self, account_id: str) -> None:...
