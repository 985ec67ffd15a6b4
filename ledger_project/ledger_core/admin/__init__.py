from .account import AccountAdmin, AccountBalanceSnapshotAdmin
from .auditlog import AuditLogAdmin
from .company import CompanyAdmin, UserAdmin
from .documents import CustomerAdmin, PurchaseDocAdmin, SalesDocAdmin, VendorAdmin
from .inventory import InventoryBalanceAdmin, InventoryMovementAdmin, ItemAdmin, WarehouseAdmin
from .journal import JournalEntryAdmin, JournalLineAdmin
from .payment import PaymentAdmin
from .period import AccountingPeriodAdmin
from .transaction_set import TransactionSetAdmin
