from .catalog import Product, User
from .inventory import StockIn, StockInItem, StockLot, DailySequence
from .sales import Sale, SaleItem, SaleLotAllocation

__all__ = [
    'Product', 'User',
    'StockIn', 'StockInItem', 'StockLot', 'DailySequence',
    'Sale', 'SaleItem', 'SaleLotAllocation',
]
