from enum import Enum


class TradeSide(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class PositionStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    PARTIAL = "Partial"


class ChartImageType(str, Enum):
    BEFORE_ENTRY = "beforeEntry"
    AFTER_EXIT = "afterExit"


class CapitalChangeType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
