from .debt import (
    DebtCreate, DebtBatchCreate, DebtUpdate, DebtPayRequest, DebtPayFullRequest,
    DebtOut, DebtWithPaymentsOut, DebtPaymentOut, DebtSummaryOut, DebtBatchResult,
)
from .transaction import TransactionIn, TransactionCreate, TransactionOut
from .subscription import (
    SubscriptionStatusOut, SubscriptionOut, CheckLimitRequest, CheckLimitResponse,
    CancelSubscriptionRequest, GrantPremiumRequest, ExpireSubscriptionsResponse,
    UsageRecordOut,
)
