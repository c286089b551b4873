import logging
from typing import List, Optional, Sequence

from receiptflow.categories.schemas import CategorizationRule, RulePatternType
from receiptflow.line_items.schemas import LineItem

logger = logging.getLogger(__name__)

VENDOR_RULE_CONFIDENCE = 0.9
ITEM_RULE_CONFIDENCE = 0.85


def find_matching_rule(
    text: Optional[str],
    pattern_type: RulePatternType,
    rules: Sequence[CategorizationRule]
) -> Optional[CategorizationRule]:
    """
    First active rule of the given type whose pattern occurs in `text`.

    Rules are tried by priority, highest first; equal priorities keep their
    input order.
    """
    if not text:
        return None

    haystack = text.lower()
    candidates = sorted(
        (rule for rule in rules if rule.is_active and rule.pattern_type == pattern_type),
        key=lambda rule: -rule.priority,
    )
    for rule in candidates:
        if rule.pattern.lower() in haystack:
            return rule
    return None


def apply_rules(
    line_items: Sequence[LineItem],
    vendor_name: Optional[str],
    rules: Sequence[CategorizationRule]
) -> List[LineItem]:
    """
    Pre-annotates line items from user rules.

    A vendor rule applies to every line of the receipt (0.9); otherwise an
    item rule matching the description applies (0.85). Unmatched items are
    returned unchanged.
    """
    if not rules:
        return list(line_items)

    vendor_rule = find_matching_rule(vendor_name, RulePatternType.VENDOR, rules)

    annotated: List[LineItem] = []
    for item in line_items:
        if vendor_rule:
            rule, confidence = vendor_rule, VENDOR_RULE_CONFIDENCE
        else:
            rule = find_matching_rule(item.description, RulePatternType.ITEM, rules)
            confidence = ITEM_RULE_CONFIDENCE

        if rule is None:
            annotated.append(item)
            continue

        logger.debug(f"Rule {rule.name!r} matched line item {item.description!r}")
        annotated.append(item.model_copy(update={
            "suggested_category_id": rule.category_id,
            "category_confidence": confidence,
        }))

    return annotated
