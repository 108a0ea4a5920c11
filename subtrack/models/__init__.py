from .user import User
from .subscription import Subscription
from .payment_record import PaymentRecord

__all__ = ["User", "Subscription", "PaymentRecord"]
