"""Client for the remote NFT update API.

The API accepts a multipart form describing the metadata change and answers
with a partially-signed transaction (``result.encoded_transaction``) that the
caller must sign and broadcast itself. This module never signs or submits.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests
from requests import RequestException, Response

from .config import UpdaterConfig
from .errors import RemoteRequestFailed, ResponseShapeError
from .fields import build_update_form

logger = logging.getLogger(__name__)


def _response_body(response: Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ShyftUpdateClient:
    """Thin wrapper around ``POST /sol/v2/nft/update``."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str,
        timeout: float,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: UpdaterConfig) -> "ShyftUpdateClient":
        return cls(config.require_api_key(), api_url=config.api_url, timeout=config.api_timeout)

    def request_update(self, parameters: Mapping[str, Any]) -> str:
        """Submit ``parameters`` and return the encoded transaction."""

        with build_update_form(parameters) as form:
            logger.info("Sending update request to NFT API: %s", form.log_data)
            if form.raw_json_fields:
                logger.warning(
                    "Sent as raw strings (invalid JSON): %s", ", ".join(form.raw_json_fields)
                )
            try:
                response = self._session.post(
                    self.api_url,
                    headers={"x-api-key": self.api_key},
                    files=form.multipart_parts(),
                    timeout=self.timeout,
                )
            except RequestException as exc:
                logger.error(
                    "Update request failed: %s",
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                raise RemoteRequestFailed(f"Update request failed: {exc}") from exc

        return self._extract_encoded_transaction(response)

    def _extract_encoded_transaction(self, response: Response) -> str:
        if not response.ok:
            body = _response_body(response)
            logger.error("Update API HTTP error %s from %s", response.status_code, response.url)
            logger.error("Update API error body: %s", body)
            raise RemoteRequestFailed(
                f"Update request failed with status {response.status_code}",
                status_code=response.status_code,
                body=body,
                headers=response.headers,
            )

        body = _response_body(response)
        result = body.get("result") if isinstance(body, dict) else None
        encoded = result.get("encoded_transaction") if isinstance(result, dict) else None
        if not isinstance(encoded, str) or not encoded:
            raise ResponseShapeError(
                "Update API response did not include result.encoded_transaction",
                status_code=response.status_code,
                body=body,
                headers=response.headers,
            )
        logger.info("Update request successful; received encoded transaction")
        return encoded
