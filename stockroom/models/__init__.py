from stockroom.models.product import Product
from stockroom.models.warehouse import Warehouse
from stockroom.models.document import StockDocument, StockDocumentLine
from stockroom.models.movement import StockMovement
