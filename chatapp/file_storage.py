"""
File Storage Management for Message Attachments
Handles validation and storage of uploaded files, producing attachment metadata
"""

import os
import time
import uuid
import logging
from dataclasses import dataclass

import aiofiles
from fastapi import UploadFile

from .errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

# Configuration
UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'uploads')
PUBLIC_PREFIX = '/uploads'
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
ALLOWED_EXTENSIONS = {
    '.jpeg', '.jpg', '.png', '.gif', '.webp',
    '.mp4', '.mov', '.avi', '.mkv',
    '.pdf', '.doc', '.docx', '.txt', '.rtf', '.odt', '.xlsx', '.xls', '.ppt', '.pptx',
    '.mp3', '.wav', '.ogg', '.m4a', '.aac',
}
ALLOWED_MIME_TYPES = {
    'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp',
    'video/mp4', 'video/quicktime', 'video/x-msvideo', 'video/x-matroska',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain', 'text/rtf',
    'application/vnd.oasis.opendocument.text',
    'audio/mpeg', 'audio/wav', 'audio/ogg', 'audio/mp4', 'audio/aac',
}


def classify_file_type(mime_type: str) -> str:
    if mime_type.startswith('image/'):
        return 'image'
    if mime_type.startswith('video/'):
        return 'video'
    if mime_type.startswith('audio/'):
        return 'audio'
    return 'document'


@dataclass(frozen=True)
class Attachment:
    url: str
    original_name: str
    mime_type: str
    size_bytes: int

    @property
    def file_type(self) -> str:
        return classify_file_type(self.mime_type)


class AttachmentStorage:
    """Stores uploaded attachments on local disk"""

    def __init__(self, upload_dir: str = UPLOAD_DIR, public_prefix: str = PUBLIC_PREFIX,
                 max_file_size: int = MAX_FILE_SIZE):
        self.upload_dir = upload_dir
        self.public_prefix = public_prefix.rstrip('/')
        self.max_file_size = max_file_size
        os.makedirs(self.upload_dir, exist_ok=True)

    @staticmethod
    def generate_filename(original_filename: str) -> str:
        """Generate unique filename keeping the original extension"""
        file_ext = os.path.splitext(original_filename)[1].lower()
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{file_ext}"

    def get_file_path(self, filename: str) -> str:
        return os.path.join(self.upload_dir, filename)

    def get_public_url(self, filename: str) -> str:
        return f"{self.public_prefix}/{filename}"

    def discard(self, attachment: Attachment) -> None:
        """Remove a stored attachment that no message ended up referencing"""
        file_path = self.get_file_path(attachment.url.rsplit('/', 1)[-1])
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.info(f"Discarded orphaned attachment {file_path}")

    def validate(self, file: UploadFile) -> None:
        """Validate uploaded file type and declared size"""
        if file.size and file.size > self.max_file_size:
            raise ValidationError("File too large. Max size is 50MB")

        file_ext = os.path.splitext(file.filename or '')[1].lower()
        if file_ext not in ALLOWED_EXTENSIONS or file.content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"Invalid file type. Received: {file.content_type}")

    async def save(self, file: UploadFile) -> Attachment:
        """Save uploaded file and return its attachment metadata"""
        self.validate(file)

        content = await file.read()
        if len(content) > self.max_file_size:
            raise ValidationError("File too large. Max size is 50MB")

        filename = self.generate_filename(file.filename or 'upload')
        file_path = self.get_file_path(filename)
        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(content)
        except OSError as e:
            # Clean up file if it was created
            if os.path.exists(file_path):
                os.remove(file_path)
            logger.error(f"Saving attachment {file.filename!r} failed: {e}")
            raise DependencyError(f'attachment storage failure: {e}') from e

        return Attachment(
            url=self.get_public_url(filename),
            original_name=file.filename,
            mime_type=file.content_type,
            size_bytes=len(content),
        )
