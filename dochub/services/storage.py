import logging
import os
import shutil
import uuid
from typing import BinaryIO, Optional
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from dochub.config import settings
from dochub.core.exceptions import StorageFailure

logger = logging.getLogger(__name__)

def generate_stored_name(filename: str) -> str:
    """Opaque blob name: a random uuid plus the original extension.

    The client-supplied name never reaches the storage path, which rules out
    collisions and path traversal.
    """
    ext = os.path.splitext(os.path.basename(filename or ""))[1].lower()
    return f"{uuid.uuid4().hex}{ext}"

class LocalStorageService:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, stored_name: str) -> str:
        return os.path.join(self.root, os.path.basename(stored_name))

    def save(self, file_obj: BinaryIO, filename: str, content_type: Optional[str] = None) -> tuple[str, str]:
        """Write content to disk, returns (stored_name, retrieval_path)"""
        stored_name = generate_stored_name(filename)
        try:
            with open(self._path(stored_name), "wb") as target:
                shutil.copyfileobj(file_obj, target)
        except OSError as e:
            logger.error(f"Failed to store {stored_name}: {e}")
            raise StorageFailure("Failed to store file content")
        return stored_name, f"/uploads/{stored_name}"

    def delete(self, stored_name: str) -> bool:
        try:
            path = self._path(stored_name)
            if os.path.exists(path):
                os.remove(path)
            return True
        except OSError as e:
            logger.error(f"Failed to delete {stored_name}: {e}")
            return False

    def exists(self, stored_name: str) -> bool:
        return os.path.isfile(self._path(stored_name))

    def local_path(self, stored_name: str) -> Optional[str]:
        return self._path(stored_name)

    def create_presigned_download_url(self, stored_name: str, filename: Optional[str] = None) -> Optional[str]:
        # Local content is streamed by the download route
        return None

class B2StorageService:
    def __init__(self):
        self.key_id = settings.B2_KEY_ID
        self.app_key = settings.B2_APP_KEY
        self.bucket = settings.B2_BUCKET_NAME
        self.endpoint_url = settings.B2_ENDPOINT_URL or ""

        if not self.key_id or not self.app_key:
            logger.warning("B2 credentials not set. Storage service may fail.")

        # Endpoint format: https://s3.us-west-004.backblazeb2.com
        self.region_name = "us-west-004"
        if "us-east-005" in self.endpoint_url:
            self.region_name = "us-east-005"
        elif "eu-central-003" in self.endpoint_url:
            self.region_name = "eu-central-003"

        self.s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url or None,
            aws_access_key_id=self.key_id,
            aws_secret_access_key=self.app_key,
            region_name=self.region_name,
            config=Config(signature_version='s3v4')
        )

    def _key(self, stored_name: str) -> str:
        return f"uploads/{stored_name}"

    def save(self, file_obj: BinaryIO, filename: str, content_type: Optional[str] = None) -> tuple[str, str]:
        """Upload file-like object to B2, returns (stored_name, retrieval_path)"""
        stored_name = generate_stored_name(filename)
        extra_args = {
            'ServerSideEncryption': 'AES256'
        }
        if content_type:
            extra_args['ContentType'] = content_type

        try:
            self.s3_client.upload_fileobj(
                file_obj,
                self.bucket,
                self._key(stored_name),
                ExtraArgs=extra_args
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {stored_name}: {e}")
            raise StorageFailure("Failed to store file content")
        return stored_name, self._key(stored_name)

    def delete(self, stored_name: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=self._key(stored_name))
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete {stored_name}: {e}")
            return False

    def exists(self, stored_name: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=self._key(stored_name))
            return True
        except ClientError:
            return False

    def local_path(self, stored_name: str) -> Optional[str]:
        return None

    def create_presigned_download_url(self, stored_name: str, filename: Optional[str] = None) -> str:
        """Generate presigned URL for download"""
        params = {
            'Bucket': self.bucket,
            'Key': self._key(stored_name)
        }
        if filename:
            params['ResponseContentDisposition'] = f'attachment; filename="{filename}"'

        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params=params,
                ExpiresIn=settings.S3_PRESIGNED_URL_EXPIRY
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to sign download of {stored_name}: {e}")
            raise StorageFailure("Failed to generate download URL")

def create_storage_service():
    if settings.STORAGE_BACKEND == "b2":
        return B2StorageService()
    return LocalStorageService(settings.UPLOADS_DIR)

storage_service = create_storage_service()

def get_storage():
    return storage_service
