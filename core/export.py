"""
資料匯出：將存在的 JSON 檔案打包為 zip
"""

import os
import zipfile
from typing import Optional

EXPORT_FILES = ("links.json", "data.json", "found.json", "sent.json")
EXPORT_ARCHIVE = "data_export.zip"


def build_export_archive(data_dir: str = "data") -> Optional[str]:
    """
    打包資料檔案

    Returns:
        zip 檔案路徑；沒有任何可匯出的檔案時返回 None
    """
    existing = [
        os.path.join(data_dir, name)
        for name in EXPORT_FILES
        if os.path.exists(os.path.join(data_dir, name))
    ]
    if not existing:
        return None

    archive_path = os.path.join(data_dir, EXPORT_ARCHIVE)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in existing:
            archive.write(path, arcname=os.path.basename(path))
    return archive_path
