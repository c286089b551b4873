"""
Normalizacja pozycji paragonu zwróconych przez dostawcę ekstrakcji.

Pozycje są nieufne: każde pole może być puste, mieć zły typ albo przyjść
jako obiekt {"value": ..., "confidence": ...}. Normalizacja nigdy nie rzuca
wyjątku. Brakujące pola dostają bezpieczne wartości domyślne, a kolejność
i liczba pozycji odpowiadają temu, co zwrócił dostawca.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from receiptflow.line_items.schemas import LineItem, PriceRegime, ProviderLineItem, UNKNOWN_ITEM

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

_TOTAL_KEYS = ("total_price", "total_amount", "total")
_CONFIDENCE_KEYS = ("confidence", "confidence_score", "description_confidence", "quantity_confidence")
_DECIMAL_COMMA = re.compile(r",\d{1,2}$")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _unwrap(value: Any) -> tuple[Any, Optional[float]]:
    """Splits {"value": x, "confidence": c} into (x, c); bare values pass through."""
    if isinstance(value, Mapping):
        confidence = value.get("confidence")
        return value.get("value"), float(confidence) if _is_number(confidence) else None
    return value, None


def _finite_decimal(text: str) -> Optional[Decimal]:
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def _unify_separators(text: str) -> str:
    """
    "12,50" / "1.234,56" -> decimal comma; "1,234.56" / "1,234" -> thousands comma.

    A comma is the decimal separator only when it is the last separator and
    at most two digits follow it.
    """
    if "," not in text:
        return text
    if _DECIMAL_COMMA.search(text):
        return text.replace(".", "").replace(",", ".")
    return text.replace(",", "")


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if _is_number(value):
        return _finite_decimal(str(value))
    if isinstance(value, str):
        # Najpierw zapis, który Decimal rozumie wprost ("1.5e2", " 12.50 ")
        result = _finite_decimal(value.strip())
        if result is not None:
            return result
        # "12,50 zł" -> "12.50", "$1,234.56" -> "1234.56"
        cleaned = _unify_separators(re.sub(r"[^\d,.\-]", "", value))
        if not cleaned:
            return None
        return _finite_decimal(cleaned)
    return None


def quantize_amount(amount: Decimal) -> Optional[Decimal]:
    """Rounds to cents; None when the amount has too many digits to represent."""
    try:
        return amount.quantize(TWO_PLACES)
    except InvalidOperation:
        logger.warning(f"Amount {amount} is out of range, treating it as unreadable")
        return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Reads a money amount (number or text) as Decimal cents, None when unreadable."""
    amount = _to_decimal(value)
    if amount is None:
        return None
    return quantize_amount(amount)


def to_provider_item(raw: Any) -> ProviderLineItem:
    """
    Reads one raw provider entry field by field.

    Non-mapping entries produce an empty item so the line count survives.
    """
    if isinstance(raw, ProviderLineItem):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning(f"Skipping unreadable line item payload of type {type(raw).__name__}")
        return ProviderLineItem()

    signals: List[float] = []
    for key in _CONFIDENCE_KEYS:
        value = raw.get(key)
        if _is_number(value):
            signals.append(float(value))

    unit_price, unit_confidence = _unwrap(raw.get("unit_price"))
    if unit_confidence is not None:
        signals.append(unit_confidence)

    total_price = None
    for key in _TOTAL_KEYS:
        if raw.get(key) is not None:
            total_price, total_confidence = _unwrap(raw.get(key))
            if total_confidence is not None:
                signals.append(total_confidence)
            break

    quantity, _ = _unwrap(raw.get("quantity"))
    description, _ = _unwrap(raw.get("description"))
    sku, _ = _unwrap(raw.get("sku") or raw.get("product_code"))

    return ProviderLineItem(
        description=description if isinstance(description, str) else None,
        quantity=quantity,
        unit_price=unit_price,
        total_price=total_price,
        confidence_signals=signals,
        discounted=bool(raw.get("discount") or raw.get("discounted")),
        sku=str(sku) if sku not in (None, "") else None,
    )


def detect_price_regime(items: Iterable[ProviderLineItem]) -> PriceRegime:
    """
    Picks one regime for a whole batch.

    Integer-only prices mean minor units (cents). Any float, Decimal or string
    price means the provider already sends decimal amounts.
    """
    prices = [
        price
        for item in items
        for price in (item.unit_price, item.total_price)
        if price is not None
    ]
    if prices and all(isinstance(price, int) and not isinstance(price, bool) for price in prices):
        return PriceRegime.MINOR_UNITS
    return PriceRegime.DECIMAL


class LineItemNormalizer:
    """
    Converts raw provider line entries into canonical `LineItem`s.

    Exactly one money conversion is applied per price: either division of
    minor units by 100 or a direct decimal cast, never both.
    """

    def __init__(self, price_regime: Optional[PriceRegime] = None):
        self.price_regime = price_regime

    def normalize(self, raw_items: Optional[Sequence[Union[ProviderLineItem, Mapping[str, Any]]]]) -> List[LineItem]:
        if not raw_items:
            return []

        provider_items = [to_provider_item(raw) for raw in raw_items]
        regime = self.price_regime or detect_price_regime(provider_items)

        return [self._normalize_item(item, regime) for item in provider_items]

    def _convert_price(self, value: Any, regime: PriceRegime) -> Optional[Decimal]:
        amount = _to_decimal(value)
        if amount is None:
            return None
        if regime is PriceRegime.MINOR_UNITS:
            amount = amount / Decimal(100)
        return quantize_amount(amount)

    def _normalize_item(self, item: ProviderLineItem, regime: PriceRegime) -> LineItem:
        description = (item.description or "").strip() or UNKNOWN_ITEM

        quantity = _to_decimal(item.quantity)
        if quantity is None or quantity <= 0:
            quantity = Decimal("1")

        total_price = self._convert_price(item.total_price, regime)
        if total_price is None:
            logger.debug(f"Line item {description!r} has no readable total, using 0.00")
            total_price = Decimal("0.00")

        return LineItem(
            description=description[:500],
            quantity=quantity,
            unit_price=self._convert_price(item.unit_price, regime),
            total_price=total_price,
            confidence=self.item_confidence(item),
            discounted=item.discounted,
            sku=item.sku[:100] if item.sku else None,
        )

    @staticmethod
    def item_confidence(item: ProviderLineItem) -> float:
        """Mean of the confidence signals attached to the item, 0 when there are none."""
        signals = [min(1.0, max(0.0, signal)) for signal in item.confidence_signals]
        if not signals:
            return 0.0
        return sum(signals) / len(signals)
