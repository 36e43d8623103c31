"""
Product image hosting on Cloudinary.

cloudinary picks its credentials up from the CLOUDINARY_URL environment
variable.
"""

import logging

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile

from config import CLOUDINARY_FOLDER
from errors import UpstreamFailure

logger = logging.getLogger(__name__)


class ImageHost:
    def __init__(self, folder: str = CLOUDINARY_FOLDER):
        self.folder = folder

    def upload(self, file: UploadFile, public_id: str) -> str:
        """Upload the file and return its hosted https URL."""
        try:
            result = cloudinary.uploader.upload(
                file.file,
                folder=self.folder,
                public_id=public_id,
                overwrite=True,
                resource_type="image",
            )
        except CloudinaryError as exc:
            logger.error("Image upload for %s failed: %s", public_id, exc)
            raise UpstreamFailure("Image upload failed") from exc
        return result["secure_url"]


def get_image_host() -> ImageHost:
    return ImageHost()
