"""Output file naming shared by the exporters."""

from pathlib import Path
from typing import Optional, Union

from delivery_sheet.config import get_config
from delivery_sheet.formatting import slugify_title


def export_path(directory: Optional[Union[str, Path]], title: str, extension: str) -> Path:
    """
    ``<directory>/<slugified title>.<extension>``, creating the directory.

    Falls back to the configured export directory when none is given.
    """
    directory = Path(directory if directory is not None else get_config().export_dir).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{slugify_title(title)}.{extension.lstrip('.')}"
