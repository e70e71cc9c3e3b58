from .parties import Customer, Driver, TransferAccount
from .catalog import Product
from .shipments import Shipment, ShipmentLine, SHIPMENT_STATUSES
from .invoices import Invoice, InvoiceLine, INVOICE_STATUSES
from .payments import Payment, PAYMENT_TYPES
from .documents import DocumentSequence

__all__ = [
    'Customer', 'Driver', 'TransferAccount',
    'Product',
    'Shipment', 'ShipmentLine', 'SHIPMENT_STATUSES',
    'Invoice', 'InvoiceLine', 'INVOICE_STATUSES',
    'Payment', 'PAYMENT_TYPES',
    'DocumentSequence',
]
