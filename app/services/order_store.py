"""Durable order records. The only place CryptoOrder rows are read or written."""
import threading
from contextlib import contextmanager, nullcontext

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, select

from app.models import CryptoOrder


class OrderStore:
    """
    Every upsert is one committed transaction: either the whole record is replaced or
    nothing changes. Returned objects are detached copies; mutate them and upsert again.

    Methods block on database I/O and may be called from worker threads.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        # StaticPool hands every thread the same connection; sessions on it must not overlap
        self._serial = threading.Lock() if isinstance(engine.pool, StaticPool) else nullcontext()

    @contextmanager
    def _session(self):
        with self._serial, Session(self._engine, expire_on_commit=False) as db:
            yield db

    def upsert(self, order: CryptoOrder) -> CryptoOrder:
        with self._session() as db:
            merged = db.merge(order)
            db.commit()
            db.refresh(merged)
            db.expunge(merged)
            return merged

    def get(self, order_id: str) -> CryptoOrder | None:
        if not order_id:
            return None
        with self._session() as db:
            order = db.get(CryptoOrder, order_id)
            if order is not None:
                db.expunge(order)
            return order

    def list_all(self) -> list[CryptoOrder]:
        """Newest first; order_id breaks ties so one listing is stable."""
        stmt = select(CryptoOrder).order_by(CryptoOrder.created_at.desc(), CryptoOrder.order_id.desc())
        with self._session() as db:
            orders = list(db.exec(stmt).all())
            for o in orders:
                db.expunge(o)
            return orders
