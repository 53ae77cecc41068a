import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx

from vendors import PrimeCODAPIError, raise_for_response

logger = logging.getLogger("cod-sync")


class PrimeCODClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PrimeCODClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def get_leads(self, page: int = 1) -> List[Dict[str, Any]]:
        try:
            response = self._client.get("/leads", params={"page": page})
        except httpx.HTTPError as exc:
            raise PrimeCODAPIError(f"PrimeCOD request failed on page {page}: {exc}") from exc
        body = raise_for_response(response, PrimeCODAPIError, f"leads page {page}")
        leads = body.get("data")
        return leads if isinstance(leads, list) else []

    def iter_lead_pages(self, max_pages: int) -> Iterator[Tuple[int, List[Dict[str, Any]]]]:
        # The API has no has_more flag; an empty page ends the listing.
        for page in range(1, max_pages + 1):
            leads = self.get_leads(page)
            if not leads:
                logger.info("PrimeCOD page %s is empty, stopping", page)
                return
            yield page, leads


def create_primecod_client(config, transport: Optional[httpx.BaseTransport] = None) -> PrimeCODClient:
    return PrimeCODClient(
        config.primecod_base_url,
        config.primecod_token,
        timeout=config.http_timeout_seconds,
        transport=transport,
    )
