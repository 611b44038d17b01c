"""
DerivativeSet - Persisted record describing an image's generated renditions.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .job import JobPayload


@dataclass
class DerivativeSet:
    """
    Attributes:
        filename: Source filename stem
        author_id: Submitter identity
        gallery_id: Owning gallery id
        thumbnail_path: Path of the 300x200 thumbnail
        preview_path: Path of the 800px-high preview
        full_size_path: Path of the full-size source
        created_at: Time the record was written
        author: Submitter display name
        id: Store-assigned id, None until saved
    """
    filename: str
    author_id: str
    gallery_id: str
    thumbnail_path: str
    preview_path: str
    full_size_path: str
    created_at: datetime
    author: str = ""
    id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: JobPayload) -> 'DerivativeSet':
        """Build the record for a job; creation time is stamped now, not at upload."""
        return cls(
            filename=payload.filename,
            author_id=payload.user_id,
            gallery_id=payload.gallery_id,
            thumbnail_path=payload.thumbnail_path,
            preview_path=payload.preview_path,
            full_size_path=payload.full_size_image_path,
            created_at=datetime.now(),
            author=payload.user_fullname or "",
        )
