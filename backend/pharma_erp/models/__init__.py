from pharma_erp.models.warehouse import Warehouse
from pharma_erp.models.product import Product
from pharma_erp.models.inventory import Inventory
from pharma_erp.models.product_lot import ProductLot
from pharma_erp.models.combo import Combo, ComboItem
from pharma_erp.models.fund import Fund
from pharma_erp.models.transaction import FinancialTransaction
from pharma_erp.models.sales_order import SalesOrder, SalesOrderItem

__all__ = [
    "Warehouse", "Product", "Inventory", "ProductLot",
    "Combo", "ComboItem", "Fund", "FinancialTransaction",
    "SalesOrder", "SalesOrderItem",
]
