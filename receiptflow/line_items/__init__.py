from receiptflow.line_items.normalizer import LineItemNormalizer, detect_price_regime, parse_amount, to_provider_item
from receiptflow.line_items.schemas import LineItem, PriceRegime, ProviderLineItem, UNKNOWN_ITEM

__all__ = [
    "LineItemNormalizer",
    "detect_price_regime",
    "parse_amount",
    "to_provider_item",
    "LineItem",
    "PriceRegime",
    "ProviderLineItem",
    "UNKNOWN_ITEM",
]
