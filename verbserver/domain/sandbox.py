"""Safe resolution and reading of files below a root directory."""

from pathlib import Path

from verbserver.domain.errors import FileAccessError


def resolve_sandbox_path(root: str, user_path: str) -> Path:
    """Resolve ``user_path`` and make sure it stays below ``root``.

    Relative paths are taken relative to ``root``. Raises ``FileAccessError``
    with status 400 for NUL bytes, empty names and escapes.
    """
    if "\x00" in user_path:
        raise FileAccessError(
            400, f"The filename {user_path!r} contains invalid characters"
        )
    if not user_path:
        raise FileAccessError(400, "No filename specified")

    root_path = Path(root).resolve()
    target = (root_path / user_path).resolve()
    if not (target == root_path or root_path in target.parents):
        raise FileAccessError(
            400, f"The file {target.as_posix()} is outside of the base file path"
        )
    return target


def read_sandboxed_file(root: str, user_path: str) -> tuple[Path, bytes]:
    """Return the resolved path and content of a file inside ``root``."""
    target = resolve_sandbox_path(root, user_path)
    if not target.exists():
        raise FileAccessError(404, f"The file {target.as_posix()} does not exist")
    if target.is_dir():
        raise FileAccessError(400, f"The file {target.as_posix()} specifies a directory")
    try:
        return target, target.read_bytes()
    except OSError as error:
        raise FileAccessError(
            500, f"The file {target.as_posix()} could not be read"
        ) from error
