from .debts import router as debts_router
from .subscription import router as subscription_router
from .transactions import router as transactions_router
from .usage import router as usage_router
