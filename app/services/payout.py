"""
Automatic crypto delivery after payment.

Only USDT on TRC20 is delivered automatically. Everything else needs a manual payout
(admin completes the order). A failed payout never undoes the payment.
"""
import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation

from app.core.config import Settings
from app.core.errors import PayoutError
from app.models import CryptoOrder

log = logging.getLogger("crypbuy.payout")

# (asset, network) -> token decimals
SUPPORTED_PAYOUTS = {("USDT", "TRC20"): 6}


def to_base_units(amount: str, decimals: int) -> int:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise PayoutError("invalid_amount", f"Invalid payout amount: {amount!r}")
    if not value.is_finite() or value <= 0:
        raise PayoutError("invalid_amount", f"Invalid payout amount: {amount!r}")
    return int((value * (Decimal(10) ** decimals)).to_integral_value())


def extract_txid(result) -> str:
    """Client responses are a plain tx id or an object/dict carrying `txid` (or `id`)."""
    if isinstance(result, str) and result:
        return result
    if isinstance(result, dict):
        txid = result.get("txid") or result.get("id")
    else:
        txid = getattr(result, "txid", None) or getattr(result, "id", None)
    if isinstance(txid, str) and txid:
        return txid
    raise PayoutError("transfer_error", "Unexpected TRON transaction response")


class TronpyTransferClient:
    """TRC20 transfer signed with the hot wallet key (tronpy, blocking calls)."""

    def __init__(self, full_host: str, private_key: str):
        from tronpy import Tron
        from tronpy.keys import PrivateKey
        from tronpy.providers import HTTPProvider

        self._tron = Tron(HTTPProvider(full_host))
        self._key = PrivateKey(bytes.fromhex(private_key))
        self._owner = self._key.public_key.to_base58check_address()

    def transfer(self, contract_address: str, to_address: str, amount: int, fee_limit: int):
        contract = self._tron.get_contract(contract_address)
        txn = (
            contract.functions.transfer(to_address, amount)
            .with_owner(self._owner)
            .fee_limit(fee_limit)
            .build()
            .sign(self._key)
        )
        return txn.broadcast()


class PayoutDispatcher:
    def __init__(self, settings: Settings, client=None):
        self.mode = settings.usdt_trc20_mode or "real"
        self._private_key = settings.tron_private_key
        self._full_host = settings.tron_full_host
        self._contract = settings.trc20_usdt_contract
        self._fee_limit = settings.tron_fee_limit
        self._client = client
        if self.mode == "mock":
            log.info("USDT TRC20 is running in MOCK mode. No real blockchain transfers will be made.")
        elif self.mode == "real" and not self._private_key and client is None:
            log.warning("TRON_PRIVATE_KEY is not set. USDT TRC20 auto delivery is disabled.")

    @staticmethod
    def supports(asset: str | None, network: str | None) -> bool:
        return ((asset or "").upper(), (network or "").upper()) in SUPPORTED_PAYOUTS

    def _transfer_client(self):
        if self._client is not None:
            return self._client
        if not self._private_key:
            raise PayoutError("payout_unavailable", "TRON wallet not configured")
        try:
            self._client = TronpyTransferClient(self._full_host, self._private_key)
        except ImportError:
            raise PayoutError("payout_unavailable", "tronpy is not installed. pip install tronpy")
        except ValueError as e:
            raise PayoutError("payout_unavailable", f"Invalid TRON private key: {type(e).__name__}")
        return self._client

    async def dispatch(self, order: CryptoOrder) -> str:
        """Sends order.crypto_amount to order.wallet_address; returns the tx hash."""
        key = ((order.asset or "").upper(), (order.network or "").upper())
        decimals = SUPPORTED_PAYOUTS.get(key)
        if decimals is None:
            raise PayoutError(
                "unsupported_asset_network",
                f"Auto delivery is not enabled for {order.asset} on {order.network}",
            )
        amount = to_base_units(order.crypto_amount, decimals)

        if self.mode == "mock":
            tx = f"MOCKUSDT-{int(time.time() * 1000):x}"
            log.info("Mock USDT TRC20 send: %s USDT to %s, tx=%s", order.crypto_amount, order.wallet_address, tx)
            return tx
        if self.mode != "real":
            raise PayoutError("payout_unavailable", f"Unknown payout mode: {self.mode}")

        client = self._transfer_client()
        try:
            result = await asyncio.to_thread(
                client.transfer, self._contract, order.wallet_address, amount, self._fee_limit
            )
        except PayoutError:
            raise
        except Exception as e:
            raise PayoutError("transfer_error", f"TRC20 transfer failed: {e}")
        tx = extract_txid(result)
        log.info("USDT TRC20 sent: order=%s amount=%s tx=%s", order.order_id, order.crypto_amount, tx)
        return tx
