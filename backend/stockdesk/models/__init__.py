from .inventory import Supplier, Product
from .customers import Customer, Seller
from .sales import Sale, SaleItem, DISCOUNT_TYPES, PAYMENT_METHODS

__all__ = [
    'Supplier', 'Product',
    'Customer', 'Seller',
    'Sale', 'SaleItem',
    'DISCOUNT_TYPES', 'PAYMENT_METHODS',
]

# Entity kinds served by the generic CRUD surface, keyed by URL/collection name
ENTITY_MODELS = {
    'suppliers': Supplier,
    'customers': Customer,
    'sellers': Seller,
    'products': Product,
}

# Top-level arrays of the JSON document layout, parents before children
DOCUMENT_MODELS = {
    'suppliers': Supplier,
    'customers': Customer,
    'sellers': Seller,
    'products': Product,
    'sales': Sale,
    'saleItems': SaleItem,
}
