"""Local storage for uploaded files (avatars, task attachments, chat files)."""

import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .models import Attachment, media_kind


logger = logging.getLogger(__name__)


class MediaStore:
    """Writes uploads under a root directory and hands back Attachment records."""

    def __init__(self, root: Path, base_url: str = "/uploads"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def save(self, upload: FileStorage, folder: str) -> Optional[Attachment]:
        """Persist one upload. Returns None for empty form fields."""
        if upload is None or not upload.filename:
            return None

        original_name = upload.filename
        filename = secure_filename(original_name) or "file"
        public_id = f"{folder}/{uuid.uuid4().hex[:12]}_{filename}"
        target = self.root / public_id
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(str(target))

        content_type = upload.mimetype or "application/octet-stream"
        attachment = Attachment(
            url=f"{self.base_url}/{public_id}",
            public_id=public_id,
            type=media_kind(content_type),
            original_name=original_name,
            size=target.stat().st_size,
            content_type=content_type,
        )
        logger.debug("Stored upload %s (%d bytes)", public_id, attachment.size)
        return attachment

    def save_all(self, uploads: Iterable[FileStorage], folder: str, limit: Optional[int] = None) -> list[Attachment]:
        uploads = list(uploads)
        if limit is not None:
            uploads = uploads[:limit]
        saved = []
        for upload in uploads:
            attachment = self.save(upload, folder)
            if attachment:
                saved.append(attachment)
        return saved

    def delete(self, public_id: str) -> bool:
        """Remove a stored file. Paths escaping the root are ignored."""
        target = (self.root / public_id).resolve()
        if self.root.resolve() not in target.parents:
            logger.warning("Refusing to delete outside media root: %s", public_id)
            return False
        if target.exists():
            target.unlink()
            return True
        return False

    def delete_all(self, attachments: Iterable[Attachment]) -> int:
        return sum(1 for a in attachments if a.public_id and self.delete(a.public_id))
