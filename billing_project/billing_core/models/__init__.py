from .auditlog import AuditLog
from .catalog import CatalogItem, Category, UnitOfMeasure
from .client import Client
from .company import Company, CompanySettings
from .invoice import Invoice, InvoiceLine, Payment
from .quotation import Quotation, QuotationLine
from .recurring import RecurringInvoiceLine, RecurringInvoiceTemplate
from .share_link import ShareLink
