from __future__ import annotations

from typing import Any, Dict

import httpx

SUPPORTED_VENDORS = ("shopify", "primecod")


class VendorAPIError(Exception):
    vendor = "vendor"

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ShopifyAPIError(VendorAPIError):
    vendor = "shopify"


class PrimeCODAPIError(VendorAPIError):
    vendor = "primecod"


def decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def raise_for_response(
    response: httpx.Response,
    error_cls: type[VendorAPIError],
    context: str,
) -> Dict[str, Any]:
    body = decode_body(response)
    if response.is_success:
        return body if isinstance(body, dict) else {"data": body}
    raise error_cls(
        f"{error_cls.vendor} API error during {context}: {response.status_code}",
        status_code=response.status_code,
        payload=body,
    )
