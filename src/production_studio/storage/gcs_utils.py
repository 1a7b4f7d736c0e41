"""
GCS helpers for production assets
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

import requests
from google.cloud import storage

from ..core.config import BUCKET_NAME, DEPLOYMENT_ENV, PUBLIC_BUCKET_NAME, get_google_credentials
from ..core.errors import ProviderNotConfiguredError

logger = logging.getLogger(__name__)

# Initialize storage client once
_storage_client = None
_buckets = {}


def _get_client() -> storage.Client:
    global _storage_client
    if _storage_client is None:
        _storage_client = storage.Client(credentials=get_google_credentials())
    return _storage_client


def _get_bucket(bucket_name: Optional[str] = None):
    """Get or create bucket instance (cached per name)"""
    name = bucket_name or BUCKET_NAME
    if not name:
        raise ProviderNotConfiguredError("Cloud storage", "BUCKET_NAME")
    if name not in _buckets:
        _buckets[name] = _get_client().bucket(name)
    return _buckets[name]


def _environment() -> str:
    return DEPLOYMENT_ENV.lower() if DEPLOYMENT_ENV else "local"


def parse_gcs_path(gcs_path: str) -> Tuple[str, str]:
    """Split ``gs://bucket/blob`` into (bucket, blob)"""
    parts = gcs_path.replace("gs://", "", 1).split("/", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def upload_bytes_to_gcs(
    data: bytes,
    session_id: str,
    asset_type: str,
    filename: str,
    content_type: Optional[str] = None,
    return_format: str = "gs"
) -> str:
    """
    Upload bytes for a session asset

    Args:
        data: Bytes data to upload
        session_id: Session identifier
        asset_type: Type of asset (images, videos, narration, exports)
        filename: Name of the file
        content_type: Optional MIME type
        return_format: "gs" for gs:// path (default), "signed" for signed URL

    Returns:
        GCS path (gs://) or signed URL
    """
    bucket = _get_bucket()
    blob_name = f"{_environment()}/sessions/{session_id}/{asset_type}/{filename}"
    blob = bucket.blob(blob_name)
    blob.upload_from_string(data, content_type=content_type)
    logger.info(f"[GCS Utils] Uploaded {len(data)} bytes to {blob_name}")

    if return_format == "signed":
        return blob.generate_signed_url(version="v4", expiration=timedelta(days=7), method="GET")
    return f"gs://{bucket.name}/{blob_name}"


def upload_production_file(
    data: bytes,
    folder_name: str,
    filename: str,
    content_type: Optional[str] = None,
    make_public: bool = False
) -> Tuple[str, Optional[str]]:
    """
    Upload one file of a finished production

    Files land under ``{env}/productions/{folder_name}/``. With
    ``make_public`` the file goes to PUBLIC_BUCKET_NAME when configured.

    Returns:
        (gs:// path, public URL or None)
    """
    bucket_name = PUBLIC_BUCKET_NAME if make_public and PUBLIC_BUCKET_NAME else None
    bucket = _get_bucket(bucket_name)
    blob_name = f"{_environment()}/productions/{folder_name}/{filename}"
    blob = bucket.blob(blob_name)
    blob.upload_from_string(data, content_type=content_type)

    public_url = None
    if make_public:
        public_url = f"https://storage.googleapis.com/{bucket.name}/{blob_name}"
    return f"gs://{bucket.name}/{blob_name}", public_url


def download_to_bytes(url: str) -> bytes:
    """
    Download a GCS object or HTTP(S) URL into memory

    Args:
        url: gs:// path or HTTPS URL

    Returns:
        File contents as bytes
    """
    if url.startswith("gs://"):
        bucket_name, blob_name = parse_gcs_path(url)
        return _get_client().bucket(bucket_name).blob(blob_name).download_as_bytes()
    response = requests.get(url, timeout=60)
    response.raise_for_status()
    return response.content


def generate_signed_url(gcs_path: str, expiration_days: int = 7) -> str:
    """
    Generate signed URL for an existing GCS object

    Args:
        gcs_path: GCS path (gs://...)
        expiration_days: Days until expiration (max 7)

    Returns:
        Signed URL, or the input unchanged when it is not a gs:// path
    """
    if not gcs_path.startswith("gs://"):
        return gcs_path
    bucket_name, blob_name = parse_gcs_path(gcs_path)
    blob = _get_client().bucket(bucket_name).blob(blob_name)
    return blob.generate_signed_url(
        version="v4",
        expiration=timedelta(days=min(expiration_days, 7)),
        method="GET"
    )
