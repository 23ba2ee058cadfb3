from .tenancy import Shop, Sequence, IdempotencyKey, generate_uuid
from .parties import Customer, Vendor, PARTY_MODELS, PARTY_TYPES, PARTY_CUSTOMER, PARTY_VENDOR
from .invoices import Invoice, InvoiceCustomerSnapshot, InvoiceItem, InvoiceTotals, InvoicePhoto
from .payments import Payment, PaymentAllocation
from .purchases import Purchase, PURCHASE_STATUSES

__all__ = [
    'Shop', 'Sequence', 'IdempotencyKey', 'generate_uuid',
    'Customer', 'Vendor', 'PARTY_MODELS', 'PARTY_TYPES', 'PARTY_CUSTOMER', 'PARTY_VENDOR',
    'Invoice', 'InvoiceCustomerSnapshot', 'InvoiceItem', 'InvoiceTotals', 'InvoicePhoto',
    'Payment', 'PaymentAllocation',
    'Purchase', 'PURCHASE_STATUSES',
]
