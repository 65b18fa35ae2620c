"""
Render service: image-to-image redesign through the FAL queue (FLUX dev).

A job is submitted once and then polled at a fixed interval until it completes,
fails or the poll budget runs out. Every non-fatal failure is reported as a
warning on the result together with the original image URL.
"""
import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from roomlens.core.config import Settings
from roomlens.middleware.logging_middleware import get_logger
from roomlens.schemas.render import RenderJobState, RenderResponse

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]

RENDER_STRENGTH = 0.85
RENDER_GUIDANCE_SCALE = 7.5
RENDER_INFERENCE_STEPS = 40

WARNING_MISSING_KEY = "FAL_KEY missing; returning original image as placeholder."
WARNING_SUBMIT_FAILED = "FAL call failed."
WARNING_INVALID_JSON = "Invalid JSON from FAL."
WARNING_JOB_FAILED = "Generation failed on server."
WARNING_TIMED_OUT = "Timed out waiting for FLUX."
WARNING_NO_IMAGE = "No image from FLUX."


def extract_output_url(payload: Dict[str, Any]) -> Optional[str]:
    """First image URL of a FAL result, from either `images[0].url` or `image.url`"""
    images = payload.get("images") or []
    if images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]["url"]
    image = payload.get("image")
    if isinstance(image, dict) and image.get("url"):
        return image["url"]
    return None


@dataclass
class RenderJob:
    """Mutable poll state of a single queued render"""

    request_id: str
    source_image_url: str
    state: RenderJobState = RenderJobState.SUBMITTED
    polls: int = 0
    output_url: Optional[str] = None

    def to_response(self, warning: Optional[str] = None) -> RenderResponse:
        image_url = self.output_url if self.state == RenderJobState.COMPLETED else self.source_image_url
        return RenderResponse(
            image_url=image_url,
            state=self.state,
            warning=warning,
            job_id=self.request_id,
            polls=self.polls,
        )


class RenderService:
    """Submits FLUX image-to-image jobs and polls them to completion"""

    def __init__(
        self,
        settings: Settings,
        http_session: aiohttp.ClientSession,
        sleep: Optional[Sleep] = None,
    ):
        self.settings = settings
        self.http_session = http_session
        self.sleep = sleep or asyncio.sleep
        self.poll_interval = settings.fal_poll_interval
        self.max_polls = settings.fal_max_polls

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.fal_key)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.settings.fal_key}", "Content-Type": "application/json"}

    @staticmethod
    def _placeholder(image_url: str, state: RenderJobState, warning: str) -> RenderResponse:
        return RenderResponse(image_url=image_url, state=state, warning=warning)

    async def render(self, image_url: str, prompt: str) -> RenderResponse:
        if not self.is_configured:
            logger.warning("FAL_KEY missing; returning original image")
            return self._placeholder(image_url, RenderJobState.FAILED, WARNING_MISSING_KEY)

        payload = {
            "prompt": prompt,
            "image_url": image_url,
            "strength": RENDER_STRENGTH,
            "guidance_scale": RENDER_GUIDANCE_SCALE,
            "num_inference_steps": RENDER_INFERENCE_STEPS,
            "enable_safety_checker": False,
        }

        try:
            async with self.http_session.post(self.settings.fal_submit_url, json=payload, headers=self._headers()) as response:
                body = await response.text()
                ok = 200 <= response.status < 300
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"FAL submission network error: {e}")
            return self._placeholder(image_url, RenderJobState.FAILED, WARNING_SUBMIT_FAILED)

        if not ok:
            logger.error(f"FAL API error ({status}): {body[:500]}")
            return self._placeholder(image_url, RenderJobState.FAILED, WARNING_SUBMIT_FAILED)

        try:
            result = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from FAL submission: {e}")
            return self._placeholder(image_url, RenderJobState.FAILED, WARNING_INVALID_JSON)

        if not isinstance(result, dict):
            return self._placeholder(image_url, RenderJobState.FAILED, WARNING_INVALID_JSON)

        request_id = result.get("request_id")
        if request_id:
            job = RenderJob(request_id=str(request_id), source_image_url=image_url)
            logger.info(f"FAL job {job.request_id} submitted")
            return await self.poll(job)

        output = extract_output_url(result)
        if output:
            return RenderResponse(image_url=output, state=RenderJobState.COMPLETED)
        return self._placeholder(image_url, RenderJobState.FAILED, WARNING_NO_IMAGE)

    async def _poll_once(self, job: RenderJob) -> Optional[Dict[str, Any]]:
        """One status request; None when the poll should be skipped"""
        url = f"{self.settings.fal_status_url.rstrip('/')}/{job.request_id}"
        try:
            async with self.http_session.get(url, headers={"Authorization": f"Key {self.settings.fal_key}"}) as response:
                if not 200 <= response.status < 300:
                    logger.debug(f"FAL poll {job.polls} for {job.request_id}: HTTP {response.status}")
                    return None
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"FAL poll network error for {job.request_id}: {e}")
            return None

        try:
            status_json = json.loads(body)
        except json.JSONDecodeError:
            return None
        return status_json if isinstance(status_json, dict) else None

    async def poll(self, job: RenderJob) -> RenderResponse:
        """
        Drive a submitted job through POLLING to a terminal state.

        Every attempt counts against the budget, including skipped ones.
        A COMPLETED status without an image URL keeps polling.
        """
        job.state = RenderJobState.POLLING
        while job.polls < self.max_polls:
            await self.sleep(self.poll_interval)
            job.polls += 1

            status_json = await self._poll_once(job)
            if status_json is None:
                continue

            status = status_json.get("status")
            if status == "COMPLETED":
                output = extract_output_url(status_json)
                if output:
                    job.state = RenderJobState.COMPLETED
                    job.output_url = output
                    logger.info(f"FAL job {job.request_id} completed after {job.polls} polls")
                    return job.to_response()
            elif status == "FAILED":
                job.state = RenderJobState.FAILED
                logger.error(f"FAL job {job.request_id} failed: {str(status_json)[:500]}")
                return job.to_response(WARNING_JOB_FAILED)

        job.state = RenderJobState.TIMED_OUT
        logger.warning(f"FAL job {job.request_id} timed out after {job.polls} polls")
        return job.to_response(WARNING_TIMED_OUT)
