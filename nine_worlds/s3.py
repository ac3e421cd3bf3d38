import io
import logging
import re
import uuid
from urllib.parse import quote, unquote, urlparse

import boto3

from nine_worlds.config import AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION, AWS_BUCKET_NAME

logger = logging.getLogger(__name__)

_SAFE_FILENAME_RE = re.compile(r'[^a-zA-Z0-9._-]+')
_client = None


def get_client():
    global _client
    if _client is None:
        _client = boto3.client(
            "s3",
            region_name=AWS_REGION,
            aws_access_key_id=AWS_ACCESS_KEY_ID,
            aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        )
    return _client


def sanitize_filename(name: str) -> str:
    """URL-safe, S3-friendly filename. Never empty."""
    name = (name or "").strip()
    name = re.sub(r'\s+', '-', name)
    name = _SAFE_FILENAME_RE.sub('-', name)
    name = re.sub(r'-{2,}', '-', name)
    return name or "file"


def public_url(key: str) -> str:
    return f"https://{AWS_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{quote(key, safe='/-._')}"


def key_from_url(url: str):
    """Inverse of public_url; None for URLs outside the bucket."""
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.netloc != f"{AWS_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com":
        return None
    return unquote(parsed.path.lstrip("/")) or None


def upload_cover(file_bytes, filename: str, content_type: str, novel_id: int) -> str:
    """Path: novels/<novel_id>/covers/<uuid>_<filename>"""
    key = f"novels/{int(novel_id)}/covers/{uuid.uuid4()}_{sanitize_filename(filename or 'cover')}"

    if isinstance(file_bytes, (bytes, bytearray)):
        file_bytes = io.BytesIO(file_bytes)

    get_client().upload_fileobj(
        file_bytes,
        AWS_BUCKET_NAME,
        key,
        ExtraArgs={
            "ContentType": content_type,
            "CacheControl": "public, max-age=31536000, immutable",
        },
    )
    return public_url(key)


def delete_cover(url: str) -> bool:
    key = key_from_url(url)
    if not key:
        return False
    get_client().delete_object(Bucket=AWS_BUCKET_NAME, Key=key)
    return True
