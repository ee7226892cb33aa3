import io
import logging
import mimetypes
import os
import uuid

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.utils import secure_filename

from eventflow.constants import FileCategory
from eventflow.errors import InputInvalid, TransitionFailed, ok, workflow_operation
from eventflow.permissions import require_role

logger = logging.getLogger(__name__)


class S3Backend:
    def __init__(self):
        """Initializes the S3 client using Flask config."""
        region = current_app.config['AWS_REGION']
        self.region = region
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=current_app.config['AWS_ACCESS_KEY_ID'],
            aws_secret_access_key=current_app.config['AWS_SECRET_ACCESS_KEY'],
            region_name=region,
            endpoint_url=f'https://s3.{region}.amazonaws.com',
            config=Config(signature_version='s3v4')
        )
        self.bucket = current_app.config['S3_BUCKET_NAME']

    def save(self, data, object_name):
        content_type = mimetypes.guess_type(object_name)[0] or 'application/octet-stream'
        self.s3_client.upload_fileobj(
            io.BytesIO(data),
            self.bucket,
            object_name,
            ExtraArgs={'ContentType': content_type}
        )
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{object_name}"


class LocalBackend:
    def __init__(self):
        self.root = current_app.config['UPLOAD_FOLDER']
        self.base_url = current_app.config.get('UPLOAD_BASE_URL', '/uploads').rstrip('/')

    def save(self, data, object_name):
        path = os.path.join(self.root, *object_name.split('/'))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(data)
        return f"{self.base_url}/{object_name}"


BACKENDS = {'local': LocalBackend, 's3': S3Backend}


def allowed_extensions(category):
    if category == FileCategory.DOCUMENT:
        return current_app.config['DOCUMENT_EXTENSIONS']
    if category == FileCategory.MEDIA:
        return current_app.config['MEDIA_EXTENSIONS']
    raise InputInvalid(f"Unknown file category: {category}")


def check_upload(data, filename, category):
    extensions = allowed_extensions(category)
    if not data:
        raise InputInvalid("No file uploaded")
    max_size = current_app.config['MAX_UPLOAD_SIZE']
    if len(data) > max_size:
        raise InputInvalid(f"File size must not exceed {max_size // (1024 * 1024)}MB")
    ext = filename.rsplit('.', 1)[1].lower() if '.' in (filename or '') else ''
    if ext not in extensions:
        allowed = ', '.join(sorted(e.upper() for e in extensions))
        raise InputInvalid(f"Only {allowed} files allowed for {category}s")
    return ext


class StorageService:

    @staticmethod
    @workflow_operation("Failed to upload file to storage")
    def upload(actor, data, filename, category=FileCategory.DOCUMENT):
        """
        Stores a blob and returns a reference to it.

        The reference (``url``) is what gets saved on the program; the store
        itself is never consulted by the workflow rules.
        """
        require_role(actor, 'upload_file')
        ext = check_upload(data, filename, category)

        # Rename so uploads never overwrite each other
        stem = secure_filename(filename).rsplit('.', 1)[0][:40] or 'file'
        object_name = f"{category}s/{stem}_{uuid.uuid4().hex[:8]}.{ext}"

        backend = BACKENDS[current_app.config.get('FILE_STORAGE_BACKEND', 'local')]()
        try:
            url = backend.save(data, object_name)
        except (OSError, BotoCoreError, ClientError):
            logger.exception("Upload of %s failed", object_name)
            raise TransitionFailed("Failed to upload file to storage")

        logger.info("Stored %s for user %s", object_name, actor.id)
        return ok(url=url, file_id=object_name)
