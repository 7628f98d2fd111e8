from __future__ import annotations
import base64
from typing import Any, Protocol
import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from storysquad.config import Settings, settings as default_settings
from storysquad.errors import ScoringError
from storysquad.schemas.submission import UploadResponse

log = structlog.get_logger()


class ScoreResult(BaseModel):
    """Normalized answer of the DS service. Values are raw floats; rounding happens in the pipeline."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    confidence: float = Field(alias="Confidence")
    rotation: float = Field(alias="Rotation")
    score: float = Field(alias="SquadScore")
    transcription: str | None = Field(default=None, alias="Transcription")
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)


class ScoringGateway(Protocol):
    async def send_submission(self, pages: list[UploadResponse], prompt_id: int) -> ScoreResult: ...


def build_payload(pages: list[UploadResponse], prompt_id: int) -> dict[str, Any]:
    body: dict[str, Any] = {"StoryId": prompt_id, "Pages": {}}
    for i, page in enumerate(pages, start=1):
        item: dict[str, Any] = {"URL": page.blob_label, "Checksum": page.etag}
        if page.raw is not None:
            item["Data"] = base64.b64encode(page.raw).decode("ascii")
        body["Pages"][str(i)] = item
    return body


class HttpScoringGateway:
    """
    One synchronous request/response per submission. No retries: any failure
    surfaces to the caller as ScoringError.
    """

    def __init__(self, cfg: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        cfg = cfg or default_settings
        self.base_url = cfg.ds_api_url.rstrip("/")
        self.token = cfg.ds_api_token
        self.timeout = cfg.ds_timeout_seconds
        self._transport = transport  # tests inject httpx.MockTransport

    async def send_submission(self, pages: list[UploadResponse], prompt_id: int) -> ScoreResult:
        payload = build_payload(pages, prompt_id)
        headers = {"Authorization": self.token} if self.token else {}
        log.debug("ds_request", prompt_id=prompt_id, pages=len(pages))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/submission/text", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            log.error("ds_request_failed", prompt_id=prompt_id, status=e.response.status_code)
            raise ScoringError(f"Scoring service answered {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            log.error("ds_request_failed", prompt_id=prompt_id, error=str(e))
            raise ScoringError("Scoring service unavailable")

        try:
            result = ScoreResult.model_validate(data)
        except PydanticValidationError as e:
            log.error("ds_response_invalid", prompt_id=prompt_id, errors=e.error_count())
            raise ScoringError("Scoring service returned an unexpected response")
        result.raw = data
        log.debug("ds_response", prompt_id=prompt_id, score=result.score, confidence=result.confidence)
        return result
