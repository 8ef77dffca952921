from .user import User, Base
from .admin_api_key import AdminApiKey
from .subscription import Subscription, SubscriptionStatus
from .usage_limit import UsageLimit
from .debt import Debt, DebtPayment, DebtType, DebtStatus
from .transaction import Transaction, TransactionType
