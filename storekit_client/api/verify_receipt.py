"""Sandbox verification endpoint.

Implements:
- POST /verifyReceipt

Accepts the same body as the App Store endpoint and answers for receipts
written by the simulated payment queue. Status codes follow the App Store:
21000 malformed request, 21002 undecodable receipt data, 21004 wrong
shared secret.
"""

import base64
import json

from fastapi import APIRouter, Request
from pydantic import ValidationError

from storekit_client.config import Config
from storekit_client.logging_config import get_logger, shorten
from storekit_client.models import ReceiptInfo, VerifyReceiptRequest, VerifyReceiptResponse

logger = get_logger(__name__)
router = APIRouter(tags=["Receipt Verification"])

STATUS_OK = 0
STATUS_MALFORMED_REQUEST = 21000
STATUS_MALFORMED_RECEIPT = 21002
STATUS_SECRET_MISMATCH = 21004


def _decode_receipt(receipt_data: str) -> dict:
    """Decode a simulated receipt (base64 of a JSON document).

    Raises:
        ValueError: If the data is not a simulated receipt
    """
    document = json.loads(base64.b64decode(receipt_data, validate=True))
    if not isinstance(document, dict) or not isinstance(document.get("in_app", []), list):
        raise ValueError("Receipt document must be an object with an in_app list")
    return document


@router.post(
    "/verifyReceipt",
    response_model=VerifyReceiptResponse,
    response_model_exclude_none=True,
)
async def verify_receipt(request: Request) -> VerifyReceiptResponse:
    """Verify a receipt and return its purchases."""
    config: Config = request.app.state.config

    try:
        body = VerifyReceiptRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning("verify_receipt_malformed_request", error=str(e))
        return VerifyReceiptResponse(status=STATUS_MALFORMED_REQUEST)

    expected_secret = config.shared_secret
    if expected_secret is not None and body.password != expected_secret.get_secret_value():
        logger.warning("verify_receipt_secret_mismatch")
        return VerifyReceiptResponse(status=STATUS_SECRET_MISMATCH)

    try:
        document = _decode_receipt(body.receipt_data)
        in_app = [ReceiptInfo(**entry) for entry in document.get("in_app", [])]
    except (ValueError, TypeError) as e:
        logger.warning(
            "verify_receipt_malformed_receipt",
            receipt=shorten(body.receipt_data),
            error=str(e),
        )
        return VerifyReceiptResponse(status=STATUS_MALFORMED_RECEIPT)

    latest_receipt_info = sorted(in_app, key=lambda info: info.purchase_date) or None

    logger.info(
        "verify_receipt_ok",
        bundle_id=document.get("bundle_id"),
        purchases=len(in_app),
    )

    return VerifyReceiptResponse(
        status=STATUS_OK,
        receipt={
            "bundle_id": document.get("bundle_id"),
            "in_app": [info.model_dump(exclude_none=True) for info in in_app],
        },
        latest_receipt_info=latest_receipt_info,
        latest_receipt=body.receipt_data,
    )
