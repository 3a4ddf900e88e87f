"""File-system artifact store for snapshot envelopes and metadata.

Each snapshot id owns two files in one directory:

- ``snapshot-<id>.enc``: the base64 envelope (unreadable without the password)
- ``snapshot-<id>.meta.json``: the plaintext ``SnapshotMetadata`` document

Usage:
    from snapshot_vault.snapshot.storage import FileArtifactStore

    store = FileArtifactStore(Path("backups"))
    store.write_envelope(snapshot_id, envelope)
    store.write_metadata(snapshot_id, metadata.model_dump_json(indent=2))
    for name, text in store.list_metadata():
        ...
"""

import logging
import os
import re
import tempfile
from collections.abc import Iterator
from pathlib import Path

from snapshot_vault.errors import ArtifactWriteFailed

logger = logging.getLogger(__name__)

SNAPSHOT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
ENVELOPE_SUFFIX = ".enc"
METADATA_SUFFIX = ".meta.json"


def is_valid_snapshot_id(snapshot_id: str) -> bool:
    """True if ``snapshot_id`` has the generated id format (32 hex chars)."""
    return bool(SNAPSHOT_ID_PATTERN.match(snapshot_id))


class FileArtifactStore:
    """Directory holding envelope and metadata artifacts keyed by snapshot id.

    Ids that do not match the generated format are never turned into file
    paths; they behave as if no artifact existed.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def envelope_name(self, snapshot_id: str) -> str:
        return f"snapshot-{snapshot_id}{ENVELOPE_SUFFIX}"

    def metadata_name(self, snapshot_id: str) -> str:
        return f"snapshot-{snapshot_id}{METADATA_SUFFIX}"

    def _path(self, name: str) -> Path:
        return self.directory / name

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write_atomic(self, name: str, content: str) -> None:
        """Write ``content`` to a temp file then rename it into place."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_path, self._path(name))
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ArtifactWriteFailed(f"Failed to write {name}: {e}") from e

    def write_envelope(self, snapshot_id: str, envelope: str) -> None:
        self._write_atomic(self.envelope_name(snapshot_id), envelope)

    def write_metadata(self, snapshot_id: str, document: str) -> None:
        self._write_atomic(self.metadata_name(snapshot_id), document)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_envelope(self, snapshot_id: str) -> str | None:
        """Envelope text, or ``None`` if it does not exist."""
        if not is_valid_snapshot_id(snapshot_id):
            return None
        path = self._path(self.envelope_name(snapshot_id))
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def read_envelope_bytes(self, snapshot_id: str) -> bytes | None:
        """Envelope file exactly as stored, or ``None`` if it does not exist."""
        if not is_valid_snapshot_id(snapshot_id):
            return None
        path = self._path(self.envelope_name(snapshot_id))
        if not path.is_file():
            return None
        return path.read_bytes()

    def read_metadata(self, snapshot_id: str) -> str | None:
        """Metadata document text, or ``None`` if it does not exist."""
        if not is_valid_snapshot_id(snapshot_id):
            return None
        path = self._path(self.metadata_name(snapshot_id))
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def list_metadata(self) -> Iterator[tuple[str, str]]:
        """Yield ``(filename, text)`` for every metadata document.

        Files that cannot be read are logged and skipped.
        """
        if not self.directory.is_dir():
            return
        for path in sorted(self.directory.glob(f"snapshot-*{METADATA_SUFFIX}")):
            try:
                yield path.name, path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read metadata file {path.name}: {e}")

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, snapshot_id: str) -> bool:
        """Remove both artifacts.

        Returns:
            ``True`` if at least one file was removed, ``False`` if none
            existed.
        """
        if not is_valid_snapshot_id(snapshot_id):
            return False
        removed = False
        for name in (self.envelope_name(snapshot_id), self.metadata_name(snapshot_id)):
            path = self._path(name)
            try:
                path.unlink()
                removed = True
            except FileNotFoundError:
                pass
        return removed
