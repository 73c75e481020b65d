# uploader.py
import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

import config
from errors import PublishError
from models import CapturedImage

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
FOLDER = "business-cards"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return f"Failed to upload image (HTTP {response.status_code})"


class ImagePublisher:
    """Upload card images to the image host and hand back their public URLs."""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        upload_preset: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self._transport = transport

    def _settings(self):
        # resolved per call so a fixed .env is picked up without a restart
        if self.cloud_name and self.upload_preset:
            return self.cloud_name, self.upload_preset
        return config.cloudinary_settings()

    async def upload(self, client: httpx.AsyncClient, image: CapturedImage, file_name: str) -> str:
        cloud_name, upload_preset = self._settings()
        public_id = f"{FOLDER}/{file_name}"
        logger.info("Uploading image %s (%s bytes)", public_id, len(image.data))
        try:
            response = await client.post(
                UPLOAD_URL.format(cloud_name=cloud_name),
                data={"upload_preset": upload_preset, "public_id": public_id},
                files={"file": (image.file_name or file_name, image.data, image.mime_type)},
            )
        except httpx.HTTPError as exc:
            logger.error("Upload of %s failed: %s", public_id, exc)
            raise PublishError(f"Failed to upload image: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            logger.error("Upload of %s rejected: %s", public_id, message)
            raise PublishError(f"Failed to upload image: {message}")

        try:
            body = response.json()
        except ValueError:
            body = None
        url = body.get("secure_url") if isinstance(body, dict) else None
        if not url:
            raise PublishError("Failed to upload image: response did not contain a URL")
        return url

    async def publish(self, images: Sequence[CapturedImage], base_name: str) -> List[str]:
        """Upload all images concurrently, returning URLs in input order.

        A single failed upload fails the batch; no partial list is returned.
        """
        self._settings()
        async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
            uploads = [
                self.upload(client, image, f"{base_name}_{slot}")
                for slot, image in enumerate(images, start=1)
            ]
            # wait for every upload before the client closes
            results = await asyncio.gather(*uploads, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        logger.info("Uploaded %d images", len(results))
        return list(results)
