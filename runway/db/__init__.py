from .models import CreditTransactionRow, EntityRow, ProductRow, UserProfileRow
from .store import RecordsDB, SQLAccountStore, SQLEntityStore

__all__ = [
    "EntityRow",
    "UserProfileRow",
    "CreditTransactionRow",
    "ProductRow",
    "RecordsDB",
    "SQLEntityStore",
    "SQLAccountStore",
]
