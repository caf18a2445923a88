"""
Order lifecycle: pending -> paid | completed -> completed.

Every read-modify-write of an order runs under that order's lock, from the status guard
through the final upsert, so two concurrent payments cannot both pass the guard.
Amounts are locked at creation and are not re-quoted when the payment arrives.
"""
import asyncio
import logging
import secrets
import time

from app.core.config import Settings
from app.core.errors import OrderNotFound, OrderStateError, PayoutError, ValidationError
from app.core.locks import KeyedLock
from app.models import CryptoOrder, OrderStatus, utcnow
from app.schemas.order import OrderCreate

from .card_channel import DirectCardChannel
from .order_store import OrderStore
from .payment_channel import PaymentChannel
from .payout import PayoutDispatcher
from .paypal_channel import PayPalWalletChannel
from .quote import CoinGeckoPriceSource, QuoteEngine

log = logging.getLogger("crypbuy.orders")

MANUAL_TX_HASH = "Manual Transfer"

_MESSAGES = {
    ("card_direct", True): "Payment approved. Crypto sent automatically.",
    ("card_direct", False): "Payment approved. Waiting for crypto delivery.",
    ("paypal", True): "Payment received via PayPal. Crypto sent automatically.",
    ("paypal", False): "Payment received via PayPal. Waiting for crypto delivery.",
}


def new_order_id() -> str:
    return f"ord-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


async def _wait_out(task: asyncio.Future) -> None:
    """Waits for `task` to finish, riding out further cancellations of the caller."""
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            continue
    if not task.cancelled() and task.exception() is not None:
        log.warning("Payment settled after caller cancellation with error: %s", task.exception())


class OrderLifecycleController:
    def __init__(
        self,
        store: OrderStore,
        quotes: QuoteEngine,
        channels: dict[str, PaymentChannel],
        payouts: PayoutDispatcher,
        sellable_assets: frozenset[str] | None = None,
        locks: KeyedLock | None = None,
    ):
        self.store = store
        self.quotes = quotes
        self.channels = channels
        self.payouts = payouts
        self.sellable_assets = sellable_assets
        self.locks = locks or KeyedLock()

    def channel(self, name: str) -> PaymentChannel:
        try:
            return self.channels[name]
        except KeyError:
            raise ValidationError(f"Unknown payment channel: {name}")

    def get_order(self, order_id: str) -> CryptoOrder:
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self) -> list[CryptoOrder]:
        return self.store.list_all()

    # Store calls are blocking database I/O; keep them off the event loop
    async def _load(self, order_id: str) -> CryptoOrder:
        return await asyncio.to_thread(self.get_order, order_id)

    async def _save(self, order: CryptoOrder) -> CryptoOrder:
        return await asyncio.to_thread(self.store.upsert, order)

    async def create_order(self, req: OrderCreate) -> CryptoOrder:
        asset = (req.asset or "").strip().upper()
        wallet = (req.wallet_address or "").strip()
        country = (req.country or "").strip().upper()
        try:
            amount = float(req.fiat_amount) if req.fiat_amount not in (None, "") else None
        except (TypeError, ValueError):
            amount = None
        if amount is None or amount != amount or amount <= 0 or not asset or not wallet or not country:
            raise ValidationError("Missing required fields")
        network = (req.network or "").strip().upper()
        if not network:
            raise ValidationError("Network is required")
        if self.sellable_assets is not None and asset not in self.sellable_assets:
            raise ValidationError(f"Unsupported asset: {asset}")

        quote = await self.quotes.quote(amount, req.fiat_currency, asset)
        order = CryptoOrder(
            order_id=new_order_id(),
            status=OrderStatus.PENDING.value,
            asset=asset,
            network=network,
            fiat_amount=quote.fiat_amount,
            fiat_currency=quote.fiat_currency,
            fiat_amount_usd=quote.fiat_amount_usd,
            crypto_amount=quote.crypto_amount,
            wallet_address=wallet,
            country=country,
            created_at=utcnow(),
            message="Order created, waiting for payment",
        )
        order = await self._save(order)
        log.info(
            "Order created: id=%s %s %s -> %s %s (%s)",
            order.order_id, order.fiat_amount, order.fiat_currency, order.crypto_amount, order.asset, order.network,
        )
        return order

    @staticmethod
    def _guard_payable(order: CryptoOrder) -> None:
        if order.status == OrderStatus.COMPLETED.value:
            raise OrderStateError("Order already completed", "already_completed")
        if order.status == OrderStatus.PAID.value:
            raise OrderStateError("Order already paid", "already_paid")

    async def begin_redirect_payment(self, order_id: str, channel: str = "paypal") -> str:
        """Phase one of a redirect checkout. The order is not modified."""
        order = await self._load(order_id)
        self._guard_payable(order)
        wallet = self.channel(channel)
        if not isinstance(wallet, PayPalWalletChannel):
            raise ValidationError(f"{channel} is not a redirect channel")
        return await wallet.create_payment(order)

    async def _try_payout(self, order: CryptoOrder) -> str | None:
        if not self.payouts.supports(order.asset, order.network):
            return None
        try:
            return await self.payouts.dispatch(order)
        except PayoutError as e:
            log.error("Auto payout failed (manual payout required): order=%s code=%s %s", order.order_id, e.code, e.message)
            return None

    async def submit_payment(self, order_id: str, channel: str, instrument) -> CryptoOrder:
        """
        Authorizes through `channel`, then attempts the automatic payout.
        Channel failures propagate and leave the stored order untouched; payout
        failures only mean the order stays `paid`.

        The settlement runs as its own task. If the caller is cancelled while it is
        in flight, the order lock stays held until the task finishes, so a retry
        can never start a second authorization for the same order.
        """
        payment_channel = self.channel(channel)
        async with self.locks.hold(order_id):
            settle = asyncio.ensure_future(self._settle(order_id, channel, payment_channel, instrument))
            try:
                order = await asyncio.shield(settle)
            except asyncio.CancelledError:
                await _wait_out(settle)
                raise
        log.info("Order %s: status=%s channel=%s payment_id=%s", order.order_id, order.status, channel, order.payment_id)
        return order

    async def _settle(self, order_id: str, channel: str, payment_channel: PaymentChannel, instrument) -> CryptoOrder:
        order = await self._load(order_id)
        self._guard_payable(order)

        receipt = await payment_channel.authorize(order, instrument)

        tx_hash = await self._try_payout(order)
        order.status = OrderStatus.COMPLETED.value if tx_hash else OrderStatus.PAID.value
        order.payment_channel = channel
        order.card_last4 = receipt.card_last4
        order.card_holder = receipt.card_holder
        order.payment_id = receipt.transaction_id
        order.auth_code = receipt.auth_code
        order.paid_at = receipt.settled_at
        order.tx_hash = tx_hash
        order.completed_at = utcnow() if tx_hash else None
        order.message = _MESSAGES.get((channel, bool(tx_hash))) or (
            "Payment approved. Crypto sent automatically." if tx_hash else "Payment approved. Waiting for crypto delivery."
        )
        return await self._save(order)

    async def complete_manually(self, order_id: str, tx_hash: str | None = None) -> CryptoOrder:
        """Admin override after an off-system transfer."""
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            if order.status == OrderStatus.COMPLETED.value:
                raise OrderStateError("Order already completed", "already_completed")
            order.status = OrderStatus.COMPLETED.value
            order.tx_hash = (tx_hash or "").strip() or MANUAL_TX_HASH
            order.completed_at = utcnow()
            order.message = "Crypto sent manually."
            order = await self._save(order)
        log.info("Order %s completed manually: tx=%s", order.order_id, order.tx_hash)
        return order

    async def aclose(self) -> None:
        await self.quotes.aclose()
        for ch in self.channels.values():
            await ch.aclose()


def build_controller(settings: Settings, store: OrderStore) -> OrderLifecycleController:
    return OrderLifecycleController(
        store=store,
        quotes=QuoteEngine(CoinGeckoPriceSource(settings)),
        channels={
            DirectCardChannel.name: DirectCardChannel(settings),
            PayPalWalletChannel.name: PayPalWalletChannel(settings),
        },
        payouts=PayoutDispatcher(settings),
        sellable_assets=settings.sellable_asset_set,
    )
