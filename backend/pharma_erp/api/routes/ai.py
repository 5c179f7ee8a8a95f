"""AI-assisted goods receipt: read a supplier invoice against the purchase order."""
import logging

from fastapi import APIRouter

from pharma_ai.invoice_extractor import ExtractionError, extract_invoice_items
from pharma_ai.invoice_schema import InvoiceExtractionRequest, InvoiceExtractionResult
from pharma_erp.core.exceptions import BusinessError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/invoices/extract", response_model=InvoiceExtractionResult)
def extract_invoice(body: InvoiceExtractionRequest):
    """Suggested receiving lines. Nothing is written; the operator reviews them."""
    try:
        return extract_invoice_items(
            text=body.text,
            image_b64=body.image_b64,
            mime_type=body.mime_type,
            expected_items=body.expected_items,
        )
    except ExtractionError as e:
        raise BusinessError.upstream_failure(e.message)
