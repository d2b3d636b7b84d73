from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final, Optional

import httpx

from config_utils import read_float_env, read_str_env


@dataclass
class TranslationResponse:
    http_status: int
    response_status: Optional[int] = None
    translated_text: str = ""
    detail: str = ""

    @property
    def transport_ok(self) -> bool:
        return 200 <= self.http_status < 300


class MyMemoryTranslationClient:
    DEFAULT_ENDPOINT: Final[str] = "https://api.mymemory.translated.net/get"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint = endpoint or read_str_env("TRANSLATION_ENDPOINT", self.DEFAULT_ENDPOINT)
        timeout = timeout_s if timeout_s is not None else read_float_env("TRANSLATION_TIMEOUT_SECONDS", 10.0)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def translate(self, text: str, source_lang: str, target_lang: str) -> TranslationResponse:
        response = await self._client.get(
            self._endpoint,
            params={"q": text, "langpair": f"{source_lang}|{target_lang}"},
        )
        if not response.is_success:
            logging.warning("translation_http_error status=%d", response.status_code)
            return TranslationResponse(http_status=response.status_code)

        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Translation response is not a JSON object.")
        data = payload.get("responseData") or {}
        return TranslationResponse(
            http_status=response.status_code,
            response_status=self._coerce_status(payload.get("responseStatus")),
            translated_text=str(data.get("translatedText") or "") if isinstance(data, dict) else "",
            detail=str(payload.get("responseDetails") or ""),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _coerce_status(value: Any) -> Optional[int]:
        # The service reports some statuses as strings ("403").
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
