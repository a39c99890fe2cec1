"""
Blob storage for project uploads.

The backend is chosen once at startup from ``STORAGE_BACKEND`` and kept
on ``app.extensions['blob_store']``; callers never inspect the
environment themselves.
"""
import logging
import os
from abc import ABC, abstractmethod
from urllib.parse import quote

import requests
from flask import current_app
from werkzeug.security import safe_join

from app.errors import InfrastructureError, NotFoundError

logger = logging.getLogger(__name__)

SIGNED_URL_EXPIRES_SECONDS = 3600


class BlobStore(ABC):
    """Upload, link and delete opaque blobs addressed by a key."""

    @abstractmethod
    def upload(self, key, data, content_type=None):
        """Store ``data`` (bytes) under ``key``; returns the key."""

    @abstractmethod
    def get_url(self, key):
        """Return a URL from which the blob can be fetched."""

    @abstractmethod
    def delete(self, key):
        """Delete the blob; deleting a missing key is not an error."""


class LocalFilesystemBlobStore(BlobStore):
    """Blobs under a directory on local disk (development, tests)."""

    def __init__(self, root, url_prefix='/api/uploads'):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip('/')

    def path_for(self, key):
        path = safe_join(self.root, key)
        if path is None:
            raise NotFoundError('파일을 찾을 수 없습니다')
        return path

    def upload(self, key, data, content_type=None):
        path = self.path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(data)
        logger.info('Stored blob locally: %s (%d bytes)', key, len(data))
        return key

    def get_url(self, key):
        return f'{self.url_prefix}/{quote(key)}'

    def delete(self, key):
        path = self.path_for(key)
        if os.path.exists(path):
            os.remove(path)


class SupabaseBlobStore(BlobStore):
    """Supabase Storage over its REST API with the service-role key."""

    def __init__(self, url, service_key, bucket, timeout=30):
        self.base = f"{url.rstrip('/')}/storage/v1"
        self.bucket = bucket
        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {service_key}',
            'apikey': service_key,
        }

    def _request(self, method, path, **kwargs):
        try:
            response = requests.request(
                method,
                f'{self.base}{path}',
                headers={**self.headers, **kwargs.pop('headers', {})},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error('Supabase storage unreachable: %s', e)
            raise InfrastructureError('파일 저장소에 연결할 수 없습니다', code='storage_unavailable')

        if not response.ok:
            logger.error(
                'Supabase storage %s %s failed: %s %s',
                method, path, response.status_code, response.text[:200],
            )
            raise InfrastructureError('파일 저장소 오류가 발생했습니다', code='storage_error')
        return response

    def upload(self, key, data, content_type=None):
        self._request(
            'POST',
            f'/object/{self.bucket}/{quote(key)}',
            data=data,
            headers={
                'Content-Type': content_type or 'application/octet-stream',
                'x-upsert': 'false',
            },
        )
        return key

    def get_url(self, key):
        response = self._request(
            'POST',
            f'/object/sign/{self.bucket}/{quote(key)}',
            json={'expiresIn': SIGNED_URL_EXPIRES_SECONDS},
        )
        return f"{self.base}{response.json()['signedURL']}"

    def delete(self, key):
        self._request('DELETE', f'/object/{self.bucket}', json={'prefixes': [key]})


def create_blob_store(config):
    """Build the configured BlobStore."""
    backend = (config.get('STORAGE_BACKEND') or 'local').lower()

    if backend == 'supabase':
        if not config.get('SUPABASE_URL') or not config.get('SUPABASE_SERVICE_KEY'):
            raise ValueError('STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_KEY')
        return SupabaseBlobStore(
            url=config['SUPABASE_URL'],
            service_key=config['SUPABASE_SERVICE_KEY'],
            bucket=config.get('SUPABASE_BUCKET') or 'uploads',
        )

    if backend == 'local':
        root = config.get('UPLOAD_FOLDER') or os.path.join(os.getcwd(), 'uploads')
        return LocalFilesystemBlobStore(root)

    raise ValueError(f'Unknown STORAGE_BACKEND: {backend}')


def get_blob_store():
    return current_app.extensions['blob_store']
