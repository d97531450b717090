from abc import ABC, abstractmethod
from typing import Optional, List, Tuple
from core.entities.account import Currency, Plan
from core.entities.payment import Payment


class PaymentRepository(ABC):
    @abstractmethod
    def create_pending(self, account_id: str, email: str, amount: int,
                       currency: Currency, plan: Plan) -> Payment:...

    @abstractmethod
    def attach_gateway_order(self, payment_id: str, gateway_order_id: str) -> Payment:...

    @abstractmethod
    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Payment]:...

    @abstractmethod
    def complete(self, gateway_order_id: str, gateway_payment_id: str) -> Tuple[Payment, bool]:
        """pending -> completed as one conditional write.

        Returns the stored payment and whether this call performed the
        transition. A repeat on a completed payment returns (payment, False).
        """

    @abstractmethod
    def fail(self, gateway_order_id: str) -> Payment:...

    @abstractmethod
    def list_all(self) -> List[Payment]:...

    @abstractmethod
    def list_by_account(self, account_id: str) -> List[Payment]:...
