from .auth import User, SessionToken
from .profiles import BusinessProfile
from .customers import Customer
from .inventory import Product, InventoryTransaction
from .documents import Document, DocumentLine, DocumentSequence, SharedDocument

__all__ = [
    'User', 'SessionToken',
    'BusinessProfile',
    'Customer',
    'Product', 'InventoryTransaction',
    'Document', 'DocumentLine', 'DocumentSequence', 'SharedDocument',
]
