"""Per-user confirmation contexts for image-identified sales.

When a product is recognised in a photo the bot asks the user to confirm the
price, type the actual price, or cancel. The pending question lives here until
the user answers, the TTL runs out, or a newer photo replaces it.
"""

import re
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Literal

from loguru import logger
from pydantic import BaseModel

from zapfin.models.schemas import ProductSnapshot

AFFIRMATIONS = frozenset({"sim", "ok", "confirmar", "confirmo", "yes"})
NEGATIONS = frozenset({"não", "nao", "no", "cancelar", "cancel"})

# "89", "89.90", "89,9", "R$ 89", "r$89,90", "reais 89", "89 reais", "89,90 real", "89 r$"
AMOUNT_PATTERN = re.compile(
    r"^(?:(?:r\$|reais|real)\s*)?(\d+(?:[.,]\d{1,2})?)\s*(?:r\$|reais|real)?$"
)

DEFAULT_TIMEOUT_SECONDS = 5 * 60


class ConfirmationContext(BaseModel):
    model_config = {"frozen": True}

    user_id: str
    product: ProductSnapshot
    created_at: float


class Classification(BaseModel):
    kind: Literal[
        "confirm", "cancel", "explicit_amount", "unrecognized", "no_active_context"
    ]
    amount: float | None = None


class Resolution(BaseModel):
    outcome: Literal["registered", "cancelled", "awaiting_clarification"]
    price: float | None = None
    product: ProductSnapshot | None = None
    # Set for awaiting_clarification
    reason: Literal[
        "unrecognized", "missing_price", "invalid_amount", "no_active_context"
    ] | None = None


class SaleMetrics(BaseModel):
    total_image_sales: int = 0
    total_image_revenue: float = 0.0
    average_confidence: float = 0.0


def parse_amount(text: str) -> float | None:
    """Parse a bare price reply such as "89,90 reais" into a float."""
    match = AMOUNT_PATTERN.match(text)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


class ConfirmationCache:
    """In-memory map of user id to the pending confirmation for that user.

    Expiry is checked when a context is read. Writes also trigger a sweep of
    expired contexts at most once every ``sweep_interval`` seconds, and the
    oldest context is evicted when ``max_contexts`` is exceeded.

    Every public method holds the cache lock for its whole duration, so
    :meth:`consume` can classify and resolve a reply without another thread
    resolving the same context in between.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
        max_contexts: int = 10_000,
        sweep_interval: float = 60,
    ):
        self.timeout = timeout
        self.max_contexts = max_contexts
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._contexts: OrderedDict[str, ConfirmationContext] = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep = clock()
        self._metrics = SaleMetrics()

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def save(self, user_id: str, product: ProductSnapshot) -> None:
        with self._lock:
            now = self._clock()
            self._contexts.pop(user_id, None)
            self._contexts[user_id] = ConfirmationContext(
                user_id=user_id, product=product, created_at=now
            )
            logger.info("Confirmation context saved for {}", user_id)

            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)
            while len(self._contexts) > self.max_contexts:
                evicted, _ = self._contexts.popitem(last=False)
                logger.warning("Confirmation context evicted for {} (cache full)", evicted)

    def peek(self, user_id: str) -> ConfirmationContext | None:
        with self._lock:
            return self._live(user_id)

    def classify(self, message: str | None, user_id: str) -> Classification:
        with self._lock:
            return self._classify(message, user_id)

    def resolve(self, user_id: str, classification: Classification) -> Resolution:
        with self._lock:
            return self._resolve(user_id, classification)

    def consume(self, user_id: str, message: str | None) -> Resolution | None:
        """Classify ``message`` and resolve it in one step.

        Returns ``None`` when the user has no live context, meaning the message
        is not a confirmation reply and should be routed normally.
        """
        with self._lock:
            classification = self._classify(message, user_id)
            if classification.kind == "no_active_context":
                return None
            return self._resolve(user_id, classification)

    def discard(self, user_id: str) -> None:
        with self._lock:
            self._contexts.pop(user_id, None)

    def sweep(self) -> int:
        """Drop every expired context. Returns how many were removed."""
        with self._lock:
            return self._sweep(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._contexts.clear()

    def record_sale(self, price: float, confidence: float | None) -> None:
        """Count an image sale that reached the ledger."""
        with self._lock:
            m = self._metrics
            count = m.total_image_sales + 1
            self._metrics = SaleMetrics(
                total_image_sales=count,
                total_image_revenue=round(m.total_image_revenue + price, 2),
                average_confidence=(m.average_confidence * (count - 1) + (confidence or 0)) / count,
            )

    def metrics(self) -> SaleMetrics:
        with self._lock:
            return self._metrics

    def _expired(self, context: ConfirmationContext, now: float) -> bool:
        return now - context.created_at > self.timeout

    def _live(self, user_id: str) -> ConfirmationContext | None:
        context = self._contexts.get(user_id)
        if context is None:
            return None
        if self._expired(context, self._clock()):
            del self._contexts[user_id]
            logger.info("Confirmation context expired for {}", user_id)
            return None
        return context

    def _sweep(self, now: float) -> int:
        self._last_sweep = now
        stale = [uid for uid, ctx in self._contexts.items() if self._expired(ctx, now)]
        for uid in stale:
            del self._contexts[uid]
        if stale:
            logger.info("Swept {} expired confirmation contexts", len(stale))
        return len(stale)

    def _classify(self, message: str | None, user_id: str) -> Classification:
        if self._live(user_id) is None:
            return Classification(kind="no_active_context")

        text = (message or "").strip().lower()
        if text in AFFIRMATIONS:
            return Classification(kind="confirm")
        if text in NEGATIONS:
            return Classification(kind="cancel")

        amount = parse_amount(text)
        if amount is not None:
            return Classification(kind="explicit_amount", amount=amount)
        return Classification(kind="unrecognized")

    def _resolve(self, user_id: str, classification: Classification) -> Resolution:
        if classification.kind == "no_active_context":
            return Resolution(outcome="awaiting_clarification", reason="no_active_context")

        context = self._live(user_id)
        if context is None:
            return Resolution(outcome="awaiting_clarification", reason="no_active_context")

        if classification.kind == "cancel":
            del self._contexts[user_id]
            logger.info("Confirmation cancelled by {}", user_id)
            return Resolution(outcome="cancelled", product=context.product)

        if classification.kind == "confirm":
            price = context.product.valor or context.product.preco or 0
            if price <= 0:
                return Resolution(
                    outcome="awaiting_clarification",
                    product=context.product,
                    reason="missing_price",
                )
        elif classification.kind == "explicit_amount":
            price = classification.amount or 0
            if price <= 0:
                return Resolution(
                    outcome="awaiting_clarification",
                    product=context.product,
                    reason="invalid_amount",
                )
        else:
            return Resolution(
                outcome="awaiting_clarification",
                product=context.product,
                reason="unrecognized",
            )

        del self._contexts[user_id]
        logger.info("Confirmation resolved for {} at {:.2f}", user_id, price)
        return Resolution(outcome="registered", price=price, product=context.product)
