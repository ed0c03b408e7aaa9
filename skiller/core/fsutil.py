"""Directory tree copying that keeps modes, symlinks and modification times."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

from skiller.core.errors import MissingPathError, NotDirectoryError


def copy_file(src: Path, dst: Path, info: os.stat_result) -> None:
    """Copy file content, then mode bits and mtime, from ``src`` to ``dst``."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)
    os.chmod(dst, stat.S_IMODE(info.st_mode))
    os.utime(dst, ns=(info.st_mtime_ns, info.st_mtime_ns))


def copy_symlink(src: Path, dst: Path) -> None:
    """Recreate a symlink at ``dst`` with the same unresolved target."""
    target = os.readlink(src)
    dst.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.symlink(target, dst)
    except FileExistsError:
        os.remove(dst)
        os.symlink(target, dst)


def copy_tree(src: Path | str, dst: Path | str) -> None:
    """
    Mirror the directory tree at ``src`` into ``dst``.

    Regular files are copied byte-for-byte with their permission bits and
    modification time, symlinks are recreated as links, directories take the
    source directory's permission bits (also when they already exist), and
    other entry kinds (sockets, devices, fifos) are skipped.

    Nothing is rolled back on failure.

    Args:
        src: Source directory
        dst: Destination directory, created with parents if missing

    Raises:
        MissingPathError: If ``src`` does not exist
        NotDirectoryError: If ``src`` is not a directory
        OSError: On any I/O failure while copying
    """
    src_root = Path(src)
    dst_root = Path(dst)

    try:
        root_info = src_root.stat()
    except FileNotFoundError:
        raise MissingPathError(src_root, "source directory") from None
    if not stat.S_ISDIR(root_info.st_mode):
        raise NotDirectoryError(src_root, "source directory")

    dst_root.mkdir(parents=True, exist_ok=True)

    # Directory modes are applied last so read-only directories can still be filled
    directory_modes: list[tuple[Path, int]] = [(dst_root, stat.S_IMODE(root_info.st_mode))]
    pending: list[tuple[Path, Path]] = [(src_root, dst_root)]

    while pending:
        src_dir, dst_dir = pending.pop()
        with os.scandir(src_dir) as entries:
            for entry in entries:
                source = Path(entry.path)
                target = dst_dir / entry.name
                info = entry.stat(follow_symlinks=False)

                if stat.S_ISLNK(info.st_mode):
                    copy_symlink(source, target)
                elif stat.S_ISDIR(info.st_mode):
                    target.mkdir(exist_ok=True)
                    directory_modes.append((target, stat.S_IMODE(info.st_mode)))
                    pending.append((source, target))
                elif stat.S_ISREG(info.st_mode):
                    copy_file(source, target, info)

    for directory, mode in reversed(directory_modes):
        os.chmod(directory, mode)
