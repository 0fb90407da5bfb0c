"""
Repository Layer - Clean Architecture pattern for ledger data access.

This module provides:
- Repository protocols for products, sales, orders and registries
- Concrete SQL implementations using SQLAlchemy Core
"""

from .base import ReadOnlyRepository, SqlRepository
from .depositors import DepositorRepository, SqlDepositorRepository
from .orders import OrderRepository, SqlOrderRepository
from .products import ProductRepository, SqlProductRepository, normalize_sku
from .sales import SaleRepository, SqlSaleRepository
from .webhook_events import ProcessedEventRepository, SqlProcessedEventRepository

__all__ = [
    # Base
    "ReadOnlyRepository",
    "SqlRepository",
    # Products
    "ProductRepository",
    "SqlProductRepository",
    "normalize_sku",
    # Sales
    "SaleRepository",
    "SqlSaleRepository",
    # Registries
    "DepositorRepository",
    "SqlDepositorRepository",
    "OrderRepository",
    "SqlOrderRepository",
    "ProcessedEventRepository",
    "SqlProcessedEventRepository",
]
