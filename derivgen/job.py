"""
Job - A unit of derivative work submitted once per uploaded image.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass
class BackoffPolicy:
    """
    Delay between attempts of a failed job.

    Attributes:
        type: Backoff strategy name (only 'exponential' is supported)
        delay_ms: Base delay in milliseconds
    """
    type: str = "exponential"
    delay_ms: int = 2000

    def delay_for(self, attempts_made: int) -> int:
        """Delay in milliseconds before the next attempt, after `attempts_made` attempts."""
        if self.type != "exponential":
            raise ValueError(f"Unsupported backoff type: {self.type}")
        return self.delay_ms * 2 ** max(attempts_made - 1, 0)


@dataclass
class RetryPolicy:
    """
    Retry policy declared when a job is submitted.

    Attributes:
        max_attempts: Total attempts before the job is marked failed
        backoff: Delay strategy between attempts
    """
    max_attempts: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)

    def to_dict(self) -> dict:
        return {
            'attempts': self.max_attempts,
            'backoff': {'type': self.backoff.type, 'delay': self.backoff.delay_ms},
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RetryPolicy':
        backoff = data.get('backoff') or {}
        return cls(
            max_attempts=int(data.get('attempts', 3)),
            backoff=BackoffPolicy(
                type=backoff.get('type', 'exponential'),
                delay_ms=int(backoff.get('delay', 2000)),
            ),
        )


@dataclass
class JobPayload:
    """
    Producer-side description of one uploaded image.

    Attributes:
        full_size_image_path: Path of the stored full-size source image
        gallery_path: Gallery directory holding thumbnails/ and previews/
        filename: Generated filename stem shared by all renditions
        extension: File extension without the dot
        user_id: Submitter identity
        gallery_id: Owning gallery id
        user_fullname: Submitter display name
    """
    full_size_image_path: str
    gallery_path: str
    filename: str
    extension: str
    user_id: str
    gallery_id: str
    user_fullname: str = ""

    THUMBNAIL_DIR = "thumbnails"
    PREVIEW_DIR = "previews"

    @property
    def output_name(self) -> str:
        return f"{self.filename}.{self.extension}"

    @property
    def thumbnail_path(self) -> str:
        return os.path.abspath(os.path.join(self.gallery_path, self.THUMBNAIL_DIR, self.output_name))

    @property
    def preview_path(self) -> str:
        return os.path.abspath(os.path.join(self.gallery_path, self.PREVIEW_DIR, self.output_name))

    def to_dict(self) -> dict:
        """Convert to the queue wire format."""
        return {
            'fullSizeImagePath': self.full_size_image_path,
            'galleryPath': self.gallery_path,
            'filename': self.filename,
            'extension': self.extension,
            'userCid': self.user_id,
            'galleryId': self.gallery_id,
            'userFullname': self.user_fullname,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'JobPayload':
        return cls(
            full_size_image_path=data['fullSizeImagePath'],
            gallery_path=data['galleryPath'],
            filename=data['filename'],
            extension=data['extension'],
            user_id=data['userCid'],
            gallery_id=data['galleryId'],
            user_fullname=data.get('userFullname') or "",
        )


@dataclass
class JobResult:
    """Result handed to `completed` listeners."""
    filename: str
    thumbnail_path: str
    preview_path: str

    def to_dict(self) -> dict:
        return {
            'filename': self.filename,
            'thumbnailPath': self.thumbnail_path,
            'previewPath': self.preview_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'JobResult':
        return cls(data['filename'], data['thumbnailPath'], data['previewPath'])


@dataclass
class Job:
    """
    A job as seen by the consumer and by store queries.

    The store is the only writer of `state` and `progress`; instances handed
    out by a store are snapshots.
    """
    id: str
    payload: JobPayload
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    state: JobState = JobState.WAITING
    progress: int = 0
    attempts_made: int = 0
    failed_reason: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=datetime.now)
    processed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def gallery_id(self) -> str:
        return self.payload.gallery_id

    @property
    def attempts_remaining(self) -> int:
        return max(self.retry_policy.max_attempts - self.attempts_made, 0)

    def summary(self) -> dict:
        """Queue-status row for this job."""
        return {
            'id': self.id,
            'filename': self.payload.filename,
            'progress': self.progress,
            'state': self.state.value,
        }
