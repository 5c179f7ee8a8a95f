"""AI module for Groq LLM integration.

Used ONLY to read supplier invoices into structured lines. The operator
reviews every line before anything is received into stock.
"""

from .invoice_extractor import ExtractionError, extract_invoice_items, reconcile_invoice

__all__ = ["ExtractionError", "extract_invoice_items", "reconcile_invoice"]
