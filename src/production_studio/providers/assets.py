"""Where rendered assets (exports, mixes) are stored

GCS when a bucket is configured, otherwise a local output directory.
"""

import logging
import os
from typing import Optional, Tuple

from ..core.errors import ProviderNotConfiguredError
from ..storage.gcs_utils import upload_bytes_to_gcs, upload_production_file

logger = logging.getLogger(__name__)


class GcsAssetStore:
    def save(self, data: bytes, session_id: str, asset_type: str, filename: str,
             content_type: Optional[str] = None) -> str:
        return upload_bytes_to_gcs(data, session_id, asset_type, filename, content_type=content_type)

    def upload_production(self, data: bytes, folder_name: str, filename: str,
                          content_type: Optional[str] = None,
                          make_public: bool = False) -> Tuple[str, Optional[str]]:
        return upload_production_file(data, folder_name, filename, content_type, make_public)


class LocalAssetStore:
    """Writes assets under ``root_dir/{session_id}/{asset_type}/``; cloud upload is unavailable"""

    def __init__(self, root_dir: str):
        self.root_dir = root_dir

    def save(self, data: bytes, session_id: str, asset_type: str, filename: str,
             content_type: Optional[str] = None) -> str:
        directory = os.path.join(self.root_dir, session_id, asset_type)
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, filename)
        with open(path, "wb") as f:
            f.write(data)
        logger.info(f"[LocalAssets] Wrote {len(data)} bytes to {path}")
        return os.path.abspath(path)

    def upload_production(self, data: bytes, folder_name: str, filename: str,
                          content_type: Optional[str] = None,
                          make_public: bool = False) -> Tuple[str, Optional[str]]:
        raise ProviderNotConfiguredError("Cloud storage", "BUCKET_NAME")
