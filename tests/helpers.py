import zipfile
from pathlib import Path
from typing import Dict


def write_zip(path: Path, files: Dict[str, bytes]) -> Path:
    """Write a ZIP at ``path`` containing ``files`` (name -> bytes)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return path
