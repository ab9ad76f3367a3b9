from .auth import User
from .catalog import Warehouse, Product, ProductPrice, Client
from .orders import Order, OrderLine, ExportState
from .days import DayStatus, ExportCounter
from .billing import CompanyConfig, BillingSettings, LocalInvoice
from .groups import ProductGroup, ProductGroupMember

__all__ = [
    'User',
    'Warehouse', 'Product', 'ProductPrice', 'Client',
    'Order', 'OrderLine', 'ExportState',
    'DayStatus', 'ExportCounter',
    'CompanyConfig', 'BillingSettings', 'LocalInvoice',
    'ProductGroup', 'ProductGroupMember',
]
