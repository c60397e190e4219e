"""
Object Storage for Synthesized Audio.

Each synthesized segment can be uploaded to one of two backends:

    - S3CompatibleStore: any S3 API endpoint (Cloudflare R2 by default),
      via boto3 with region "auto" and a custom endpoint
    - GCSStore: a Google Cloud Storage bucket, objects made public

StoreFactory holds the clients and picks the backend for each request:

    1. R2 when endpoint, access keys and a bucket are available
    2. GCS when a bucket is available
    3. None (callers return base64 audio instead)

Object Keys:
    {prefix}-{epoch_ms}-{index:03d}.{ext}, e.g. tts-1718000000000-002.mp3
"""
from __future__ import annotations

import threading
import time
from typing import Optional, Protocol

import boto3
from google.cloud import storage as gcs

from ssml_tts.core.config import StorageConfig
from ssml_tts.core.logging import get_logger, verbose, warn
from ssml_tts.services.errors import StorageError
from ssml_tts.tts.synthesizer import load_credentials
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.storage")

GCS_PUBLIC_BASE = "https://storage.googleapis.com"


class AudioStore(Protocol):
    """Upload target for segment audio."""

    name: str

    def put(self, key: str, data: bytes, content_type: str) -> Optional[str]:
        """Upload and return a public URL, or None if none is known."""
        ...


def s3_client(config: StorageConfig):
    """boto3 S3 client for an R2-style endpoint (region "auto")."""
    return boto3.client(
        "s3",
        region_name="auto",
        endpoint_url=config.r2_endpoint,
        aws_access_key_id=config.r2_access_key_id,
        aws_secret_access_key=config.r2_secret_access_key,
    )


def gcs_client(credentials_json: Optional[str] = None) -> gcs.Client:
    credentials = load_credentials(credentials_json)
    if credentials is not None:
        return gcs.Client(credentials=credentials, project=credentials.project_id)
    return gcs.Client()


def make_object_key(prefix: Optional[str], index: int, extension: str, timestamp_ms: Optional[int] = None) -> str:
    """Build the object key for one segment."""
    ts = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
    return f"{prefix or 'tts'}-{ts}-{index:03d}.{extension}"


class S3CompatibleStore:
    """
    Store backed by an S3-compatible API.

    Args:
        client: boto3 S3 client.
        bucket: Target bucket.
        public_base_url: Public origin serving the bucket (e.g.
            https://pub-xxxx.r2.dev). Without it, put() returns None.
    """

    name = "r2"

    def __init__(self, client, bucket: str, public_base_url: Optional[str] = None):
        self._client = client
        self.bucket = bucket
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @classmethod
    def from_config(cls, config: StorageConfig, bucket: Optional[str] = None) -> "S3CompatibleStore":
        return cls(s3_client(config), bucket or config.r2_bucket, config.r2_public_base_url)

    def put(self, key: str, data: bytes, content_type: str) -> Optional[str]:
        try:
            with timeit("upload") as t:
                self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except Exception as e:
            raise StorageError(f"S3 upload failed: {e}", details={"bucket": self.bucket, "key": key}) from e

        verbose(_LOG, "uploaded", store=self.name, key=key, bytes=len(data), seconds=round(t.seconds, 4))
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        return None


class GCSStore:
    """Store backed by a Google Cloud Storage bucket."""

    name = "gcs"

    def __init__(self, client: gcs.Client, bucket: str):
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, bucket: str, credentials_json: Optional[str] = None) -> "GCSStore":
        return cls(gcs_client(credentials_json), bucket)

    def put(self, key: str, data: bytes, content_type: str) -> Optional[str]:
        blob = self._client.bucket(self.bucket).blob(key)
        try:
            with timeit("upload") as t:
                blob.upload_from_string(data, content_type=content_type)
        except Exception as e:
            raise StorageError(f"GCS upload failed: {e}", details={"bucket": self.bucket, "key": key}) from e

        try:
            blob.make_public()
        except Exception as e:
            # Buckets with uniform access reject per-object ACLs; the URL may still be public
            warn(_LOG, "make_public_failed", key=key, error=str(e))

        verbose(_LOG, "uploaded", store=self.name, key=key, bytes=len(data), seconds=round(t.seconds, 4))
        return f"{GCS_PUBLIC_BASE}/{self.bucket}/{key}"


class StoreFactory:
    """
    Builds stores for request-level bucket overrides.

    Clients are created lazily under a lock and reused; only the bucket
    varies per request.
    """

    def __init__(self, config: StorageConfig, credentials_json: Optional[str] = None):
        self._config = config
        self._credentials_json = credentials_json
        self._s3_client = None
        self._gcs_client: Optional[gcs.Client] = None
        self._lock = threading.Lock()

    def r2_available(self, bucket: Optional[str] = None) -> bool:
        return self._config.r2_credentials_configured and bool(bucket or self._config.r2_bucket)

    def gcs_available(self, bucket: Optional[str] = None) -> bool:
        return bool(bucket or self._config.gcs_bucket)

    def select(self, r2_bucket: Optional[str] = None, gcs_bucket: Optional[str] = None) -> Optional[AudioStore]:
        """Return the store for this request (R2 first, then GCS), or None."""
        if self.r2_available(r2_bucket):
            if self._s3_client is None:
                with self._lock:
                    if self._s3_client is None:
                        self._s3_client = s3_client(self._config)
            return S3CompatibleStore(
                self._s3_client,
                r2_bucket or self._config.r2_bucket,
                self._config.r2_public_base_url,
            )
        if self.gcs_available(gcs_bucket):
            bucket = gcs_bucket or self._config.gcs_bucket
            if self._gcs_client is None:
                with self._lock:
                    if self._gcs_client is None:
                        self._gcs_client = gcs_client(self._credentials_json)
            return GCSStore(self._gcs_client, bucket)
        return None
