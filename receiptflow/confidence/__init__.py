from receiptflow.confidence.aggregator import aggregate
from receiptflow.confidence.schemas import ConfidenceSummary

__all__ = ["aggregate", "ConfidenceSummary"]
