import os
import tempfile


def save_asset(path: str, data: bytes, *, overwrite: bool = False) -> str:
    """Write a template asset via a temp file so readers never see a partial image.

    Raises ``FileExistsError`` when ``path`` exists and ``overwrite`` is false.
    """
    if os.path.exists(path) and not overwrite:
        raise FileExistsError(path)
    dir_path = os.path.dirname(os.path.abspath(path))
    os.makedirs(dir_path, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path, suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
    return path
