import logging
import os
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

KST = timezone(timedelta(hours=9))

_DATED_NAME_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})-(\d{2}):(\d{2}):(\d{2})$')


class ContentError(Exception):
    status_code = 500


class Forbidden(ContentError):
    status_code = 403


class NotFound(ContentError):
    status_code = 404


class ContentReadError(ContentError):
    status_code = 500


def nfc(name: str) -> str:
    return unicodedata.normalize("NFC", name)


def parse_filename_date(filename: str) -> datetime | None:
    """Timestamp of a ``YYYY-MM-DD-HH:MM:SS.md`` name, read as UTC+09:00."""
    stem = filename[:-3] if filename.endswith(".md") else filename
    m = _DATED_NAME_RE.match(stem)
    if not m:
        return None
    try:
        return datetime(*(int(g) for g in m.groups()), tzinfo=KST)
    except ValueError:
        return None


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass
class Folder:
    name: str
    latest_date: datetime | None = None

    def to_json(self) -> dict:
        return {"name": self.name, "latestDate": format_timestamp(self.latest_date)}


def _markdown_names(entries: Iterable[str]) -> list:
    return sorted((e for e in entries if e.endswith(".md")), reverse=True)


class ContentResolver:
    """Read-only view of the content tree rooted at ``root``.

    Every name coming from a client is compared to the names on disk after
    NFC normalization of both sides, so a request spelled in NFC still finds
    an entry the filesystem stores decomposed (and the other way round).
    """

    def __init__(self, root: Path, excluded: Iterable[str] = ()):
        self.root = Path(root)
        self.excluded = {nfc(name) for name in excluded}

    def is_content_folder(self, name: str) -> bool:
        name = nfc(name)
        return bool(name) and name not in self.excluded and not name.startswith(".")

    def _folder_names(self) -> list:
        try:
            entries = sorted(os.scandir(self.root), key=lambda e: e.name)
        except OSError as e:
            raise ContentReadError(f"Failed to read directories: {e}") from e
        return [e.name for e in entries
                if e.is_dir() and self.is_content_folder(e.name)
                and self._contains(Path(e.path))]

    def list_folders(self) -> list:
        folders = []
        for name in self._folder_names():
            try:
                files = _markdown_names(os.listdir(self.root / name))
            except OSError as e:
                raise ContentReadError(f"Failed to read directories: {e}") from e
            latest = parse_filename_date(files[0]) if files else None
            folders.append(Folder(name, latest))
        return folders

    def _match_entry(self, directory: Path, requested: str) -> str | None:
        wanted = nfc(requested)
        try:
            entries = os.listdir(directory)
        except OSError as e:
            raise ContentReadError(f"Failed to read {directory.name or directory}: {e}") from e
        for entry in entries:
            if nfc(entry) == wanted:
                return entry
        logger.info("No match for %r in %s; available (first 5): %s",
                    requested, directory, ", ".join(sorted(entries)[:5]))
        return None

    def resolve_folder(self, folder: str) -> Path:
        if not self.is_content_folder(folder):
            raise Forbidden("Folder not allowed")
        disk_name = self._match_entry(self.root, folder)
        if disk_name is None or not (self.root / disk_name).is_dir():
            raise NotFound("Folder not found")
        if not self.is_content_folder(disk_name):
            raise Forbidden("Folder not allowed")
        return self._inside_root(self.root / disk_name, "Folder not found")

    def _contains(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.root.resolve())
        except (ValueError, OSError):
            return False
        return True

    def _inside_root(self, path: Path, message: str = "File not found") -> Path:
        if not self._contains(path):
            raise NotFound(message)
        return path

    def list_files(self, folder: str) -> list:
        folder_path = self.resolve_folder(folder)
        try:
            return _markdown_names(os.listdir(folder_path))
        except OSError as e:
            raise ContentReadError(f"Failed to read files: {e}") from e

    def resolve_file(self, folder: str, filename: str) -> Path:
        folder_path = self.resolve_folder(folder)
        if nfc(filename).startswith("."):
            raise NotFound("File not found")
        disk_name = self._match_entry(folder_path, filename)
        if disk_name is None or not (folder_path / disk_name).is_file():
            raise NotFound("File not found")
        return self._inside_root(folder_path / disk_name)

    def read_file(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.exception("Error reading file %s", path)
            raise ContentReadError(f"Failed to read file: {e}") from e

    def read_content(self, folder: str, filename: str) -> str:
        return self.read_file(self.resolve_file(folder, filename))

    def resolve_asset(self, folder: str, relpath: str) -> Path:
        current = self.resolve_folder(folder)
        parts = relpath.replace("\\", "/").split("/")
        for part in parts:
            # dotfiles and dot directories are never served
            if not part or nfc(part).startswith(".") or not current.is_dir():
                raise NotFound("File not found")
            disk_name = self._match_entry(current, part)
            if disk_name is None:
                raise NotFound("File not found")
            current = current / disk_name
        if not current.is_file():
            raise NotFound("File not found")
        return self._inside_root(current)
