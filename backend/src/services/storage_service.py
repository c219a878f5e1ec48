"""Object store access for per-resort assets.

Assets live in a GCS bucket reached through its S3-compatible XML API,
so a plain boto3 S3 client (HMAC credentials) does all the work.
"""

import json
import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from utils.config import Settings

logger = logging.getLogger(__name__)

RESORTS_PREFIX = "resorts"
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
JSON_CACHE_CONTROL = "public, max-age=86400"
IMAGE_CACHE_CONTROL = "public, max-age=604800"


class StorageError(Exception):
    """Raised when the object store rejects a read or write."""


def create_s3_client(settings: Settings):
    """S3 client pointed at the configured (GCS interoperability) endpoint."""
    kwargs: dict[str, Any] = {
        "endpoint_url": settings.gcs_endpoint_url,
        "region_name": "auto",
    }
    if settings.gcs_access_key_id and settings.gcs_secret_access_key:
        kwargs["aws_access_key_id"] = settings.gcs_access_key_id
        kwargs["aws_secret_access_key"] = settings.gcs_secret_access_key
    return boto3.client("s3", **kwargs)


def normalize_asset_path(asset_path: str) -> str:
    """Strip slashes and any leading 'resorts/' from an asset path."""
    path = asset_path.strip("/")
    if path.startswith(f"{RESORTS_PREFIX}/"):
        path = path[len(RESORTS_PREFIX) + 1 :]
    return path


def resort_key(asset_path: str, *parts: str) -> str:
    """Object key for a resort artifact, e.g. resorts/us/colorado/vail/wiki-data.json."""
    return "/".join([RESORTS_PREFIX, normalize_asset_path(asset_path), *parts])


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


class AssetStore:
    """Reads and writes JSON, text and binary artifacts in one bucket."""

    def __init__(self, client, bucket: str, dry_run: bool = False):
        self.client = client
        self.bucket = bucket
        self.dry_run = dry_run

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageError(f"Failed to check {key}: {e}") from e

    def get_bytes(self, key: str) -> bytes | None:
        """Object body, or None when the object does not exist."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageError(f"Failed to read {key}: {e}") from e
        return response["Body"].read()

    def get_text(self, key: str) -> str | None:
        body = self.get_bytes(key)
        return body.decode("utf-8") if body is not None else None

    def get_json(self, key: str) -> Any | None:
        """Parsed JSON object, or None when absent or unparseable."""
        text = self.get_text(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed JSON in {key}: {e}")
            return None

    def put_bytes(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        if self.dry_run:
            print(f"  [DRY RUN] Would upload gs://{self.bucket}/{key} ({len(body)} bytes)")
            return

        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            kwargs["CacheControl"] = cache_control
        try:
            self.client.put_object(**kwargs)
        except ClientError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        logger.debug(f"Uploaded {key} ({len(body)} bytes)")

    def put_text(self, key: str, text: str, content_type: str = "text/plain") -> None:
        self.put_bytes(key, text.encode("utf-8"), f"{content_type}; charset=utf-8")

    def put_json(self, key: str, data: Any, cache_control: str | None = JSON_CACHE_CONTROL) -> None:
        body = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        self.put_bytes(key, body.encode("utf-8"), "application/json", cache_control)

    def list_keys(self, prefix: str) -> list[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        keys = []
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except ClientError as e:
            raise StorageError(f"Failed to list {prefix}: {e}") from e
        return keys

    def list_asset_paths(self, marker: str) -> list[str]:
        """Asset paths of every resort that has ``marker`` (e.g. 'wiki-data.json')."""
        suffix = f"/{marker}"
        paths = set()
        for key in self.list_keys(f"{RESORTS_PREFIX}/"):
            if not key.endswith(suffix):
                continue
            asset_path = normalize_asset_path(key[: -len(suffix)])
            # Only resort folders: country/state/slug, never _processing
            if asset_path.count("/") == 2 and not asset_path.startswith("_"):
                paths.add(asset_path)
        return sorted(paths)
