"""HTTP client for the WAEC Insights backend.

:class:`ChatTransport` issues one request per call and never retries.
Chat answers come back as a :class:`ChatStream`, a pull-based reader of
raw byte chunks; decoding is left to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator
from typing import Literal

import httpx
from pydantic import BaseModel, Field

from waec_insights.config import ChatConfig
from waec_insights.errors import BackendUnavailable, RequestFailed
from waec_insights.instrumentation import record_error, request_span

logger = logging.getLogger(__name__)

ANSWER_FIELDS = ("answer", "response", "message")


class GenderTrendPoint(BaseModel):
    year: int
    Male: float
    Female: float


class SchoolPerformancePoint(BaseModel):
    year: int
    Public: float
    Private: float


class SubjectPerformancePoint(BaseModel):
    year: int
    English: float
    Math: float
    Both: float


class DashboardData(BaseModel):
    gender_trend: list[GenderTrendPoint]
    school_performance: list[SchoolPerformancePoint]
    subject_performance: list[SubjectPerformancePoint]


class PredictInput(BaseModel):
    # Forecasts only; the dataset covers 2016-2021.
    year: int = Field(ge=2022)
    gender: Literal["Male", "Female"]
    school_type: Literal["Public", "Private"]
    total_sat: int = Field(ge=1, le=100000)


class PredictResponse(BaseModel):
    predicted_pass_rate: float


def _error_detail(response: httpx.Response, fallback: str) -> str:
    """Best-effort ``detail`` field from an error body."""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return fallback
    if isinstance(body, dict) and isinstance(body.get("detail"), str) and body["detail"]:
        return body["detail"]
    return fallback


class ChatStream:
    """The body of one chat answer, read a chunk at a time.

    ``read()`` returns ``(chunk, False)`` while data flows and
    ``(b"", True)`` once the body is exhausted. The underlying response
    is released on ``done``, on error, or on ``aclose()``.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._done = False
        self._chunks: AsyncGenerator[bytes, None] | None = None
        self._answer_delivered = False
        content_type = response.headers.get("content-type", "")
        self.is_json = content_type.split(";")[0].strip().lower() == "application/json"

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def read(self) -> tuple[bytes, bool]:
        if self._done:
            return b"", True
        try:
            if self.is_json:
                chunk = await self._read_json_answer()
            else:
                chunk = await self._next_chunk()
        except httpx.HTTPError as e:
            await self.aclose()
            raise BackendUnavailable(f"Answer stream interrupted: {e}") from e
        except RequestFailed:
            await self.aclose()
            raise
        if chunk is None:
            await self.aclose()
            return b"", True
        return chunk, False

    async def _next_chunk(self) -> bytes | None:
        if self._chunks is None:
            self._chunks = self._response.aiter_bytes()
        async for chunk in self._chunks:
            if chunk:
                return chunk
        return None

    async def _read_json_answer(self) -> bytes | None:
        # A complete JSON answer is delivered as a single chunk.
        if self._answer_delivered:
            return None
        self._answer_delivered = True
        body = await self._response.aread()
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RequestFailed("Malformed chat response", self.status_code) from e
        if isinstance(payload, dict):
            for field in ANSWER_FIELDS:
                if isinstance(payload.get(field), str):
                    return payload[field].encode("utf-8")
        raise RequestFailed("Malformed chat response", self.status_code)

    async def aclose(self) -> None:
        if self._done:
            return
        self._done = True
        if self._chunks is not None:
            await self._chunks.aclose()
        await self._response.aclose()


class ChatTransport:
    """Client for the backend's ``/chat``, ``/dashboard-data`` and
    ``/predict`` endpoints.

    Args:
        config: Backend location and timeouts.
        client: Optional pre-built ``httpx.AsyncClient``. When omitted,
            the transport builds and owns one.
    """

    def __init__(
        self,
        config: ChatConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or ChatConfig()
        self._owns_client = client is None
        if client is None:
            # Reads are unbounded; a slow answer is not an error here.
            timeout = httpx.Timeout(None, connect=self.config.connect_timeout)
            client = httpx.AsyncClient(timeout=timeout)
        self.client = client

    def _url(self, path: str) -> str:
        return f"{self.config.backend_url}/{path.lstrip('/')}"

    async def open_chat(self, question: str) -> ChatStream:
        """POST *question* to ``/chat`` and return the streamed answer.

        Raises:
            RequestFailed: On a non-success status.
            BackendUnavailable: If the backend cannot be reached.
        """
        async with request_span("POST", "/chat") as span:
            request = self.client.build_request(
                "POST", self._url("/chat"), json={"message": question},
            )
            try:
                response = await self.client.send(request, stream=True)
            except httpx.HTTPError as e:
                record_error(span, e)
                raise BackendUnavailable(f"Chat backend unreachable: {e}") from e

            if not response.is_success:
                try:
                    await response.aread()
                    detail = _error_detail(response, "Chat request failed")
                except httpx.HTTPError:
                    detail = "Chat request failed"
                finally:
                    await response.aclose()
                error = RequestFailed(detail, response.status_code)
                record_error(span, error)
                raise error

            if response.status_code == httpx.codes.NO_CONTENT:
                await response.aclose()
                error = RequestFailed("No response body", response.status_code)
                record_error(span, error)
                raise error

            logger.debug(f"Chat stream opened ({response.status_code})")
            return ChatStream(response)

    async def get_dashboard_data(self) -> DashboardData:
        async with request_span("GET", "/dashboard-data") as span:
            try:
                response = await self.client.get(self._url("/dashboard-data"))
            except httpx.HTTPError as e:
                record_error(span, e)
                raise BackendUnavailable(f"Dashboard backend unreachable: {e}") from e
            if not response.is_success:
                error = RequestFailed("Failed to fetch dashboard data", response.status_code)
                record_error(span, error)
                raise error
            return DashboardData.model_validate(response.json())

    async def predict(self, data: PredictInput) -> PredictResponse:
        async with request_span("POST", "/predict") as span:
            try:
                response = await self.client.post(
                    self._url("/predict"), json=data.model_dump(),
                )
            except httpx.HTTPError as e:
                record_error(span, e)
                raise BackendUnavailable(f"Prediction backend unreachable: {e}") from e
            if not response.is_success:
                error = RequestFailed(
                    _error_detail(response, "Prediction failed"), response.status_code,
                )
                record_error(span, error)
                raise error
            return PredictResponse.model_validate(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> ChatTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
