"""Client for the remote generation service."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from genflow.services.errors import EmptyResultError, RemoteServiceError
from genflow.utils.helpers import format_prompt_preview, preview_image_source

logger = logging.getLogger(__name__)


# =============================================================================
# RESPONSE TYPES
# =============================================================================

@dataclass(frozen=True)
class ImmediateResult:
    """The generate endpoint finished synchronously."""
    
    result_ref: str


@dataclass(frozen=True)
class DeferredJob:
    """The generate endpoint started a job that must be polled."""
    
    job_id: str
    estimated_time: Optional[float] = None


GenerateResponse = Union[ImmediateResult, DeferredJob]

TERMINAL_STATUSES = frozenset({"completed", "failed"})


@dataclass(frozen=True)
class JobStatus:
    """One status check of a deferred job."""
    
    job_id: str
    status: str  # "pending" | "processing" | "completed" | "failed"
    result_ref: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[int] = None
    
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_generate_response(data: Any) -> GenerateResponse:
    """
    Decide once whether a generate response is immediate or deferred.
    
    The service answers in snake_case but camelCase is accepted too.
    
    Raises:
        EmptyResultError: If the body carries neither an image nor a job id
    """
    if not isinstance(data, dict):
        raise EmptyResultError()
    
    image_url = _first(data, "image_url", "imageUrl")
    if image_url:
        return ImmediateResult(result_ref=str(image_url))
    
    job_id = _first(data, "job_id", "jobId")
    if job_id:
        estimated = _first(data, "estimated_time", "estimatedTime")
        return DeferredJob(
            job_id=str(job_id),
            estimated_time=float(estimated) if estimated is not None else None,
        )
    
    raise EmptyResultError(data.get("message"))


def parse_job_status(job_id: str, data: Any) -> JobStatus:
    """Normalize a status-check body."""
    if not isinstance(data, dict):
        return JobStatus(job_id=job_id, status="pending")
    
    progress = data.get("progress")
    return JobStatus(
        job_id=str(_first(data, "jobId", "job_id") or job_id),
        status=str(data.get("status") or "pending").lower(),
        result_ref=_first(data, "imageUrl", "image_url", "resultRef"),
        error=_first(data, "error", "message"),
        progress=int(progress) if isinstance(progress, (int, float)) else None,
    )


# =============================================================================
# SERVICE
# =============================================================================

class GenerationService(ABC):
    """Abstract remote generation service."""
    
    @abstractmethod
    async def generate(self, feature: str, payload: dict[str, Any]) -> GenerateResponse:
        pass
    
    @abstractmethod
    async def job_status(self, feature: str, job_id: str) -> JobStatus:
        pass
    
    @abstractmethod
    async def edit(self, base_result_ref: str, instruction_text: str) -> str:
        pass


class HttpGenerationService(GenerationService):
    """httpx implementation of GenerationService."""
    
    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )
    
    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
    
    async def __aenter__(self) -> "HttpGenerationService":
        return self
    
    async def __aexit__(self, *exc_info) -> None:
        await self.close()
    
    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
    
    def _raise_for_status(self, response: httpx.Response) -> Any:
        body = self._decode(response)
        if response.is_success:
            return body
        
        logger.error(
            f"{response.request.method} {response.request.url.path} "
            f"failed with status {response.status_code}: {body}"
        )
        raise RemoteServiceError(response.status_code, body)
    
    async def generate(self, feature: str, payload: dict[str, Any]) -> GenerateResponse:
        """
        Start a generation.
        
        Args:
            feature: Feature flag appended to the endpoint (``flatlay``,
                ``on-model``, ``background``)
            payload: Request body built from the session snapshot
        
        Returns:
            ImmediateResult or DeferredJob
        
        Raises:
            RemoteServiceError: On non-2xx responses
            EmptyResultError: If the response has neither image nor job id
            httpx.HTTPError: On transport failures
        """
        logger.info(
            f"Generating {feature}: prompt={format_prompt_preview(payload.get('prompt'))}, "
            f"aspect={payload.get('aspectRatio')}, resolution={payload.get('resolution')}"
        )
        
        response = await self.client.post(f"/v1/generate?{feature}", json=payload)
        data = self._raise_for_status(response)
        result = parse_generate_response(data)
        
        logger.info(f"Generate {feature} answered with {type(result).__name__}")
        return result
    
    async def job_status(self, feature: str, job_id: str) -> JobStatus:
        response = await self.client.get(f"/v1/{feature}/status/{job_id}")
        data = self._raise_for_status(response)
        return parse_job_status(job_id, data)
    
    async def edit(self, base_result_ref: str, instruction_text: str) -> str:
        """
        Refine an existing result.
        
        The edit endpoint always answers synchronously; the base image goes
        first in the image list.
        
        Returns:
            Reference to the edited image
        
        Raises:
            RemoteServiceError: On non-2xx responses
            EmptyResultError: If no image came back
            httpx.HTTPError: On transport failures
        """
        logger.info(
            f"Editing {preview_image_source(base_result_ref)} "
            f"with prompt: {format_prompt_preview(instruction_text)}"
        )
        
        response = await self.client.post(
            "/v1/generate?chat=true",
            json={"prompt": instruction_text, "images": [base_result_ref]},
        )
        data = self._raise_for_status(response)
        
        if isinstance(data, dict):
            image_url = _first(data, "image_url", "imageUrl")
            if image_url:
                return str(image_url)
            raise EmptyResultError(data.get("message") or "Image editing failed")
        
        raise EmptyResultError("Image editing failed")
