# app/models/enums/stock_movement_type.py

from enum import Enum


class StockMovementType(str, Enum):
    entry = "entry"
    exit = "exit"
    adjustment = "adjustment"
