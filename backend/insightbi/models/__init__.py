from .tenancy import Company, CompanyInvitation
from .auth import User, SessionToken
from .inventory import Category, Supplier, Warehouse, Product, InventoryMovement, StockAlert
from .sales import Customer, Salesperson, Sale, EnhancedSale, SaleItem
from .collections import Collection, AccountReceivable, Payment, CollectionActivity
from .imports import DataImport
from .chat import ChatConversation, ChatMessage
from .dashboards import Dashboard

__all__ = [
    'Company', 'CompanyInvitation',
    'User', 'SessionToken',
    'Category', 'Supplier', 'Warehouse', 'Product', 'InventoryMovement', 'StockAlert',
    'Customer', 'Salesperson', 'Sale', 'EnhancedSale', 'SaleItem',
    'Collection', 'AccountReceivable', 'Payment', 'CollectionActivity',
    'DataImport',
    'ChatConversation', 'ChatMessage',
    'Dashboard',
]
