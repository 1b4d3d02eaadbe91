# utils/s3_storage.py
import logging
import os
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    pass


class BlobNotFound(BlobStoreError):
    pass


# ========================
# Blob paths
# ========================

def clean_filename(filename):
    name = secure_filename((filename or '').replace(' ', '_'))
    return name or 'file'


def profile_image_path(client_id, filename, timestamp=None):
    ts = int((timestamp if timestamp is not None else time.time()) * 1000)
    return f"profile_images/{client_id}-{ts}-{clean_filename(filename)}"


def vehicle_image_path(vin_or_id, filename):
    return f"vehicle_images/{secure_filename(vin_or_id) or 'vehicle'}-{clean_filename(filename)}"


def invoice_pdf_path(vehicle_id, invoice_number, filename, timestamp=None):
    prefix = secure_filename((invoice_number or '').replace(' ', '_'))
    if not prefix:
        prefix = str(int((timestamp if timestamp is not None else time.time()) * 1000))
    return f"invoice_pdfs/{vehicle_id}/{prefix}-{clean_filename(filename)}"


# ========================
# Stores
# ========================

class LocalBlobStore:
    """Blobs kept as files under ``root`` and served from ``base_url``."""

    def __init__(self, root, base_url='/media'):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip('/')
        os.makedirs(self.root, exist_ok=True)

    def _full_path(self, path):
        full = os.path.abspath(os.path.join(self.root, path))
        if not full.startswith(self.root + os.sep):
            raise BlobStoreError(f"Invalid blob path: {path}")
        return full

    def upload(self, path, data, content_type=None):
        full = self._full_path(path)
        if hasattr(data, 'read'):
            data = data.read()
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise BlobStoreError(f"Upload of {path} failed: {e}") from e
        return self.url(path)

    def read(self, path):
        full = self._full_path(path)
        if not os.path.isfile(full):
            raise BlobNotFound(path)
        with open(full, 'rb') as f:
            return f.read()

    def exists(self, path):
        return os.path.isfile(self._full_path(path))

    def delete(self, path):
        full = self._full_path(path)
        if not os.path.isfile(full):
            raise BlobNotFound(path)
        try:
            os.remove(full)
        except OSError as e:
            raise BlobStoreError(f"Delete of {path} failed: {e}") from e

    def url(self, path):
        return f"{self.base_url}/{path}"


class S3BlobStore:
    def __init__(self, bucket, region, client=None, access_key=None, secret_key=None):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client(
            's3',
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    def upload(self, path, data, content_type=None):
        if hasattr(data, 'read'):
            data = data.read()
        extra = {'ContentType': content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=path, Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"S3 upload of {path} failed: {e}") from e
        return self.url(path)

    def read(self, path):
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                raise BlobNotFound(path) from e
            raise BlobStoreError(f"S3 read of {path} failed: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 read of {path} failed: {e}") from e
        return response['Body'].read()

    def delete(self, path):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                raise BlobNotFound(path) from e
            raise BlobStoreError(f"S3 delete of {path} failed: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 delete of {path} failed: {e}") from e

    def url(self, path):
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"


def blob_store_from_config(config):
    if config.get('BLOB_BACKEND') == 's3':
        return S3BlobStore(
            bucket=config['AWS_S3_BUCKET'],
            region=config['AWS_S3_REGION'],
            access_key=config.get('AWS_ACCESS_KEY_ID'),
            secret_key=config.get('AWS_SECRET_ACCESS_KEY'),
        )
    return LocalBlobStore(config['UPLOAD_FOLDER'])


def delete_quietly(store, path):
    """Delete a blob; a blob that is already gone is logged and ignored."""
    if not path:
        return
    try:
        store.delete(path)
    except BlobNotFound:
        logger.warning("Blob already missing: %s", path)
