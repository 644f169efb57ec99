import base64
import logging

import httpx

from receiptbook.errors import RemoteRejectedError, RemoteServiceError

logger = logging.getLogger("receiptbook")

DEFAULT_ENDPOINT = "https://receipt-model.cognitiveservices.azure.com/"
MODEL_ID = "prebuilt-receipt"
API_VERSION = "2023-07-31"


class FormRecognizerClient:
    """Receipt analysis through the Azure Form Recognizer REST API.

    Analysis is asynchronous on Azure's side: ``submit`` returns the
    Operation-Location URL and ``fetch_result`` reads whatever that URL
    holds at the time of the call.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self.api_key = api_key
        self._transport = transport

    @property
    def analyze_url(self) -> str:
        return f"{self.endpoint}formrecognizer/documentModels/{MODEL_ID}:analyze?api-version={API_VERSION}"

    def _client(self) -> httpx.AsyncClient:
        # No request timeout: the only deadline in the pipeline is the pre-poll delay
        return httpx.AsyncClient(transport=self._transport, timeout=None)

    async def submit(self, file_bytes: bytes) -> str:
        body = {"base64Source": base64.b64encode(file_bytes).decode("ascii")}
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.analyze_url,
                    json=body,
                    headers={
                        "Content-Type": "application/json",
                        "Ocp-Apim-Subscription-Key": self.api_key,
                    },
                )
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"Analysis request failed: {e}") from e

        if resp.status_code != 202:
            logger.warning(
                "Analysis API rejected submission",
                extra={"extra_data": {"status": resp.status_code, "body": resp.text[:500]}},
            )
            raise RemoteRejectedError(resp.status_code)

        result_url = resp.headers.get("Operation-Location")
        if not result_url:
            raise RemoteServiceError("Missing Operation-Location in response header")
        return result_url

    async def fetch_result(self, result_url: str) -> str:
        try:
            async with self._client() as client:
                resp = await client.get(
                    result_url,
                    headers={
                        "Content-Type": "application/json",
                        "Content-Length": "0",
                        "Ocp-Apim-Subscription-Key": self.api_key,
                    },
                )
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"Result request failed: {e}") from e

        if resp.status_code != 200:
            raise RemoteRejectedError(resp.status_code)
        return resp.text
