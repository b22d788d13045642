import logging
import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote, urlparse

from supabase import Client

from app.config.settings import settings
from app.core.exceptions import InternalError, ValidationError
from app.core.saga import Saga
from app.database.supabase_client import execute, first_row
from app.modules.uploads.schemas import AvatarUploadResponse

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def avatar_extension(filename: Optional[str], content_type: str) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum() and len(ext) <= 5:
            return ext
    return EXTENSIONS.get(content_type, "bin")


def storage_path_from_url(url: str, bucket: str) -> Optional[str]:
    """`https://.../storage/v1/object/public/avatars/u1/1.png` -> `u1/1.png`"""
    marker = f"/{bucket}/"
    path = unquote(urlparse(url).path)
    if marker not in path:
        return None
    return path.split(marker, 1)[1] or None


class AvatarService:
    def __init__(self, supabase: Client, bucket: Optional[str] = None):
        self.supabase = supabase
        self.bucket = bucket or settings.avatar_bucket

    def validate(self, content_type: Optional[str], size: int) -> None:
        if content_type not in settings.get_avatar_allowed_types():
            raise ValidationError("Invalid file type. Please upload a JPEG, PNG, WebP, or GIF image.")
        if size > settings.avatar_max_bytes:
            raise ValidationError("File too large. Please upload an image smaller than 5MB.")
        if size == 0:
            raise ValidationError("No file provided")

    def _storage(self):
        return self.supabase.storage.from_(self.bucket)

    def _current_avatar(self, user_id: str) -> Optional[str]:
        row = first_row(
            self.supabase.table("user_profiles").select("avatar_url").eq("id", user_id),
            "Failed to fetch profile",
        )
        return (row or {}).get("avatar_url")

    def _set_avatar(self, user_id: str, avatar_url: Optional[str], email: Optional[str] = None):
        row = {
            "id": user_id,
            "avatar_url": avatar_url,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if email:
            row["email"] = email
        return execute(self.supabase.table("user_profiles").upsert(row), "Failed to update profile")

    def _upload(self, path: str, content: bytes, content_type: str) -> str:
        try:
            self._storage().upload(
                path,
                content,
                file_options={"content-type": content_type, "cache-control": "3600", "upsert": "false"},
            )
        except Exception as e:
            logger.error("Avatar upload failed for %s: %s", path, e)
            raise InternalError("Failed to upload file")
        return path

    def _remove(self, path: str) -> None:
        try:
            self._storage().remove([path])
        except Exception as e:
            logger.error("Avatar removal failed for %s: %s", path, e)
            raise InternalError("Failed to delete file")

    def upload_avatar(self, user: dict, filename: Optional[str], content_type: str,
                      content: bytes) -> AvatarUploadResponse:
        """
        Store the image and point the profile at it. If the profile update
        fails the uploaded file is removed again.
        """
        self.validate(content_type, len(content))
        user_id = user["id"]
        previous_url = self._current_avatar(user_id)
        path = f"{user_id}/{int(time.time() * 1000)}.{avatar_extension(filename, content_type)}"

        def update_profile() -> str:
            url = self._storage().get_public_url(path)
            self._set_avatar(user_id, url, user.get("email"))
            return url

        saga = Saga("avatar_upload")
        saga.step("upload_file", lambda: self._upload(path, content, content_type), self._remove)
        public_url = saga.step("update_profile", update_profile)

        old_path = storage_path_from_url(previous_url, self.bucket) if previous_url else None
        if old_path and old_path != path:
            try:
                self._remove(old_path)
            except InternalError:
                logger.warning("Previous avatar %s left in storage", old_path)
        return AvatarUploadResponse(avatar_url=public_url, path=path)

    def delete_avatar(self, user: dict) -> str:
        """Clear the profile's avatar, then delete the file; the URL is restored if deletion fails."""
        user_id = user["id"]
        avatar_url = self._current_avatar(user_id)
        if not avatar_url:
            raise ValidationError("No avatar to delete")
        path = storage_path_from_url(avatar_url, self.bucket)
        if not path:
            raise ValidationError("Invalid avatar URL")

        saga = Saga("avatar_delete")
        saga.step(
            "clear_profile",
            lambda: self._set_avatar(user_id, None),
            lambda _: self._set_avatar(user_id, avatar_url),
        )
        saga.step("remove_file", lambda: self._remove(path))
        return path
