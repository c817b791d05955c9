from .inventory import Category, InventoryTransaction, InventoryLevel
from .fulfillment import BagOfHope, ShippingBatch, BatchSequence
from .submissions import Submission

__all__ = [
    'Category', 'InventoryTransaction', 'InventoryLevel',
    'BagOfHope', 'ShippingBatch', 'BatchSequence',
    'Submission',
]
