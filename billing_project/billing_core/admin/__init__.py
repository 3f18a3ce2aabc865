from .actions import convert_accepted_quotations, mark_as_sent
from .auditlog import AuditLogAdmin
from .catalog import CatalogItemAdmin, CategoryAdmin, UnitOfMeasureAdmin
from .company import ClientAdmin, CompanyAdmin
from .inlines import (InvoiceLineInline, PaymentInline, QuotationLineInline,
                      RecurringInvoiceLineInline)
from .invoice import InvoiceAdmin, PaymentAdmin
from .mixins import TenantAdminMixin
from .quotation import QuotationAdmin
from .recurring import RecurringInvoiceTemplateAdmin
from .share_link import ShareLinkAdmin
