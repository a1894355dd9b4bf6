from .tenancy import Organization, Warehouse
from .inventory import Item, StockLedgerEntry
from .accounting import Account, JournalEntry, JournalLine, DocumentSequence

__all__ = [
    'Organization', 'Warehouse',
    'Item', 'StockLedgerEntry',
    'Account', 'JournalEntry', 'JournalLine', 'DocumentSequence',
]
