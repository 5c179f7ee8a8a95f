"""
Supplier invoice extraction with purchase order reconciliation.

Flow:
1. Build messages (text, or text + base64 image for the vision model)
2. Call Groq, strip markdown fences, parse JSON
3. Validate against ExtractedInvoice (pydantic)
4. Reconcile with the expected purchase order lines:
   - matched: line maps to an ordered product (first occurrence only)
   - extra: line maps to nothing that was ordered
   - missing: ordered product absent from the invoice (quantity 0, cost price carried)

Any failure in 1-3 raises ExtractionError; nothing is guessed.
"""
import json
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from pharma_ai.groq_client import GroqClient, get_groq_client
from pharma_ai.invoice_schema import (
    ExpectedItem,
    ExtractedInvoice,
    ExtractedInvoiceItem,
    InvoiceExtractionResult,
    ReconciledLine,
)
from pharma_ai.prompts import SYSTEM_PROMPT, build_invoice_prompt
from pharma_erp.core.exceptions import ErpError

logger = logging.getLogger(__name__)


class ExtractionError(ErpError):
    """The model was unavailable or returned something unusable."""


def extract_invoice_items(
    text: Optional[str] = None,
    image_b64: Optional[str] = None,
    mime_type: Optional[str] = None,
    expected_items: Optional[List[ExpectedItem]] = None,
    client: Optional[GroqClient] = None,
) -> InvoiceExtractionResult:
    expected_items = list(expected_items or [])
    if not (text and text.strip()) and not image_b64:
        raise ExtractionError("Provide invoice text or an image")
    if image_b64 and not mime_type:
        raise ExtractionError("mime_type is required with an image")

    client = client or get_groq_client()
    if not client.is_available():
        raise ExtractionError("Invoice extraction is not configured (missing GROQ_API_KEY)")

    messages = _build_messages(text, image_b64, mime_type, expected_items)
    model = client.vision_model if image_b64 else None
    raw = client.complete(messages, model=model)
    if raw is None:
        raise ExtractionError("The AI service did not return a response")

    invoice = _parse_invoice(raw)
    logger.info(
        f"Invoice extracted: {len(invoice.items)} lines "
        f"({'image' if image_b64 else 'text'}, {len(expected_items)} expected)"
    )
    return reconcile_invoice(invoice.items, expected_items)


def _build_messages(
    text: Optional[str],
    image_b64: Optional[str],
    mime_type: Optional[str],
    expected_items: List[ExpectedItem],
) -> List[Dict]:
    prompt = build_invoice_prompt(expected_items)
    if text and text.strip():
        prompt = f"{prompt}\n\nInvoice text:\n{text.strip()}"

    if image_b64:
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
        ]
    else:
        content = prompt

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def _strip_code_fences(raw: str) -> str:
    """Handle ```json\\n{...}\\n``` as well as bare {...}."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def _parse_invoice(raw: str) -> ExtractedInvoice:
    try:
        data = json.loads(_strip_code_fences(raw))
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON from LLM: {e}")
        raise ExtractionError("The AI response was not valid JSON") from e

    try:
        return ExtractedInvoice.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Invoice schema validation failed: {e.error_count()} errors")
        raise ExtractionError("The AI response did not match the invoice format") from e


def reconcile_invoice(
    extracted: List[ExtractedInvoiceItem],
    expected_items: List[ExpectedItem],
) -> InvoiceExtractionResult:
    """Pure reconciliation step; safe to call without the model."""
    pending: Dict[int, ExpectedItem] = {item.product_id: item for item in expected_items}
    lines: List[ReconciledLine] = []
    matched = extra = 0

    for item in extracted:
        ordered = pending.pop(item.matched_product_id, None) if item.matched_product_id is not None else None
        quantity = int(item.quantity)
        if ordered is not None:
            matched += 1
            lines.append(ReconciledLine(
                product_id=ordered.product_id,
                name=ordered.name,
                sku=ordered.sku or "N/A",
                ordered_quantity=ordered.ordered_quantity,
                invoice_quantity=quantity,
                received_quantity=quantity,
                invoice_price=item.unit_price,
                actual_price=item.unit_price,
                lot_number=item.lot_number or "",
                expiry_date=item.expiry_date,
            ))
        else:
            extra += 1
            lines.append(ReconciledLine(
                product_id=item.matched_product_id,
                name=item.product_name_on_invoice,
                invoice_quantity=quantity,
                received_quantity=quantity,
                invoice_price=item.unit_price,
                actual_price=item.unit_price,
                lot_number=item.lot_number or "",
                expiry_date=item.expiry_date,
                is_extra_item=True,
            ))

    for ordered in pending.values():
        lines.append(ReconciledLine(
            product_id=ordered.product_id,
            name=ordered.name,
            sku=ordered.sku or "N/A",
            ordered_quantity=ordered.ordered_quantity,
            invoice_price=ordered.cost_price,
            actual_price=ordered.cost_price,
            is_missing_item=True,
        ))

    return InvoiceExtractionResult(
        items=lines,
        matched_count=matched,
        extra_count=extra,
        missing_count=len(pending),
    )
