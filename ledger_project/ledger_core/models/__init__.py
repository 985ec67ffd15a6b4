from .account import Account
from .auditlog import AuditLog
from .company import Company, User
from .customer import Customer
from .documents import PurchaseDoc, SalesDoc
from .inventory import InventoryBalance, InventoryMovement, Warehouse
from .item import Item
from .journal import JournalEntry, JournalLine
from .payment import Payment, PaymentAllocation
from .period import AccountingPeriod
from .snapshot import AccountBalanceSnapshot
from .transaction_set import TransactionSet, TransactionSetLine
from .vendor import Vendor
