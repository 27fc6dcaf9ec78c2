"""
Media storage (ImageKit)

Reel videos arrive base64 encoded in the JSON body. They are pushed to the
ImageKit upload API and only the hosted URL is kept in the database. Uploads
run on a bounded worker pool (UPLOAD_WORKERS). Once a worker picks an upload
up it has UPLOAD_TIMEOUT_SECONDS to finish; past it the upload is abandoned
and reported as a timeout, never retried. An upload still queued after
UPLOAD_QUEUE_TIMEOUT_SECONDS is cancelled before it starts. An abandoned
running upload keeps its worker until the HTTP call itself times out.
"""

import base64
import binascii
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

import requests

import config
from errors import InternalError, PayloadTooLargeError, UploadTimeoutError, ValidationError

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=config.UPLOAD_WORKERS, thread_name_prefix="media-upload")


def decode_video(video: str) -> bytes:
    payload = video.strip()
    if payload.startswith("data:"):
        payload = payload.split(",", 1)[-1]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Video must be base64 encoded")
    if not data:
        raise ValidationError("Video and price are required")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError()
    return data


def _send(data: bytes, file_name: str) -> str:
    if not config.IMAGEKIT_PRIVATE_KEY:
        raise InternalError("Media storage not configured")
    try:
        resp = requests.post(
            config.IMAGEKIT_UPLOAD_URL,
            auth=(config.IMAGEKIT_PRIVATE_KEY, ""),
            files={"file": (file_name, data, "video/mp4")},
            data={"fileName": file_name, "folder": config.IMAGEKIT_FOLDER},
            timeout=config.UPLOAD_TIMEOUT_SECONDS,
        )
    except requests.Timeout:
        raise UploadTimeoutError()
    except requests.RequestException as e:
        logger.error("Media upload request failed: %s", e)
        raise InternalError("Server error during upload")
    if resp.status_code >= 400:
        logger.error("Media storage rejected upload: %s %s", resp.status_code, resp.text[:200])
        raise InternalError("Server error during upload")
    url = resp.json().get("url")
    if not url:
        raise InternalError("Server error during upload")
    return url


def upload_video(data: bytes) -> str:
    """Upload the video bytes and return the hosted URL."""
    file_name = f"reel_{int(time.time() * 1000)}.mp4"
    started = threading.Event()

    def run():
        started.set()
        return _send(data, file_name)

    future = _executor.submit(run)
    if not started.wait(config.UPLOAD_QUEUE_TIMEOUT_SECONDS) and future.cancel():
        logger.warning("Upload of %s dropped after waiting %ss for a worker", file_name, config.UPLOAD_QUEUE_TIMEOUT_SECONDS)
        raise UploadTimeoutError()
    try:
        return future.result(timeout=config.UPLOAD_TIMEOUT_SECONDS)
    except FutureTimeout:
        logger.warning("Upload of %s abandoned after %ss", file_name, config.UPLOAD_TIMEOUT_SECONDS)
        raise UploadTimeoutError()
