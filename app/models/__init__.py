from .order import CryptoOrder, OrderStatus, utcnow

__all__ = [
    "CryptoOrder",
    "OrderStatus",
    "utcnow",
]
