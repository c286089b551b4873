"""
Receipt Processing Pipeline module.

This module contains the service orchestrating one receipt from image to
category-annotated extraction.
"""

from receiptflow.processing.service import ReceiptProcessingService, ScanQuotaGuard, UnlimitedScanQuota

__all__ = ["ReceiptProcessingService", "ScanQuotaGuard", "UnlimitedScanQuota"]
