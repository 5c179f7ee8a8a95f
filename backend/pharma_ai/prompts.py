"""
Prompts for supplier invoice extraction.

The model extracts lines and proposes a product match. It does not decide
prices, stock or what gets received: the operator reviews every line.
"""
import json
from typing import List

from pharma_ai.invoice_schema import ExpectedItem

SYSTEM_PROMPT = """You are a data entry assistant for a pharmacy ERP.
You read supplier invoices (text or an image of the invoice) and extract EVERY product line.

Rules:
- Return ONLY one JSON object. No explanation, no markdown.
- Copy the product name exactly as printed on the invoice.
- quantity is the number of units invoiced for that line.
- unit_price is the price per unit as printed, without currency symbols. Use null if not printed.
- lot_number and expiry_date (YYYY-MM-DD) only when printed on the invoice, else null.
- matched_product_id: the id of the purchase order product this line is, or null if none fits.
  Never invent an id that is not in the purchase order list.
- Do NOT merge lines and do NOT skip lines you cannot match.

Output format:
{
  "items": [
    {
      "product_name_on_invoice": "Paracetamol 500mg",
      "matched_product_id": 123,
      "quantity": 100,
      "unit_price": 50000,
      "lot_number": "A2401",
      "expiry_date": "2026-05-31"
    }
  ]
}
"""


def build_invoice_prompt(expected_items: List[ExpectedItem]) -> str:
    """User prompt listing the purchase order products the model may match against."""
    catalog = [
        {"id": item.product_id, "name": item.name, "sku": item.sku}
        for item in expected_items
    ]
    if not catalog:
        return (
            "Extract all product lines from this invoice. "
            "There is no purchase order to match against: set matched_product_id to null."
        )
    return (
        "Extract all product lines from this invoice. "
        "These are the products on my purchase order, match each line to the right id when possible:\n"
        f"{json.dumps(catalog, ensure_ascii=False)}"
    )
