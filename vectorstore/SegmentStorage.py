# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-06
# Description: SegmentStorage
# -----------------------------------------------------------------------------
import hashlib
import io
import json
import os
import re
import shutil
import tempfile
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from embedding.EmbeddingRecord import EmbeddingRecord
from utility.errors import IndexSegmentCorrupt, ModelVersionMismatch
from utility.logging_utils import get_class_logger
from vectorstore.Segment import Segment, SegmentInfo, summarize_records

MANIFEST_FILE = "manifest.json"
MANIFEST_FORMAT = 1
_SEGMENT_RE = re.compile(r"^segment-(\d{6,})\.npz$")


def segment_file_name(segment_id: int) -> str:
    return f"segment-{segment_id:06d}.npz"


def version_dir_name(model_version: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", model_version)


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


@dataclass
class Manifest:
    model_version: str
    dimensions: Optional[int] = None
    next_segment_id: int = 1
    segments: Dict[int, SegmentInfo] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": MANIFEST_FORMAT,
            "model_version": self.model_version,
            "dimensions": self.dimensions,
            "next_segment_id": self.next_segment_id,
            "updated_at": time.time(),
            "segments": [self.segments[k].to_dict() for k in sorted(self.segments)],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Manifest":
        infos = [SegmentInfo.from_dict(s) for s in d.get("segments", [])]
        dims = d.get("dimensions")
        return cls(
            model_version=str(d["model_version"]),
            dimensions=int(dims) if dims is not None else None,
            next_segment_id=int(d.get("next_segment_id", 1)),
            segments={i.segment_id: i for i in infos},
        )


class SegmentStorage:
    """
    Filesystem adapter for one model version's segments.

    Layout:
        <root>/<model_version>/manifest.json
        <root>/<model_version>/segment-000001.npz
    Each .npz holds `vectors` (float32, n x dim) and `records` (JSON metadata).
    """

    def __init__(self, root_dir: Union[str, Path], model_version: str, logger=None):
        self.root = Path(root_dir)
        self.model_version = model_version
        self.directory = self.root / version_dir_name(model_version)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.logger = logger or get_class_logger(self.__class__)

    @property
    def manifest_path(self) -> Path:
        return self.directory / MANIFEST_FILE

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def load_manifest(self) -> Manifest:
        if not self.manifest_path.exists():
            if any(self._segment_files()):
                self.logger.warning("Manifest missing in %s; rebuilding from segment files", self.directory)
                return self.rebuild_manifest()
            return Manifest(model_version=self.model_version)

        try:
            manifest = Manifest.from_dict(json.loads(self.manifest_path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.error("Unreadable manifest %s (%s); rebuilding", self.manifest_path, e)
            return self.rebuild_manifest()

        if manifest.model_version != self.model_version:
            raise ModelVersionMismatch(self.model_version, manifest.model_version)
        return manifest

    def save_manifest(self, manifest: Manifest) -> None:
        data = json.dumps(manifest.to_dict(), indent=2).encode("utf-8")
        _atomic_write(self.manifest_path, data)

    def rebuild_manifest(self) -> Manifest:
        manifest = Manifest(model_version=self.model_version)
        for seg_id, path in self._segment_files():
            try:
                data = path.read_bytes()
                segment = self._decode(seg_id, data)
            except (OSError, IndexSegmentCorrupt) as e:
                self.logger.error("Skipping segment file %s during rebuild: %s", path.name, e)
                manifest.next_segment_id = max(manifest.next_segment_id, seg_id + 1)
                continue
            manifest.segments[seg_id] = self._info_for(segment, path.name, hashlib.sha256(data).hexdigest())
            manifest.dimensions = manifest.dimensions or segment.dimensions
            manifest.next_segment_id = max(manifest.next_segment_id, seg_id + 1)

        self.save_manifest(manifest)
        self.logger.info(
            "Rebuilt manifest for %s: %d segments",
            self.model_version,
            len(manifest.segments),
        )
        return manifest

    def _segment_files(self):
        for path in sorted(self.directory.iterdir()):
            m = _SEGMENT_RE.match(path.name)
            if m:
                yield int(m.group(1)), path

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def write_segment(self, segment: Segment) -> SegmentInfo:
        meta = [r.to_metadata() for r in segment.records]
        buf = io.BytesIO()
        np.savez(buf, vectors=segment.vectors, records=np.array(json.dumps(meta)))
        data = buf.getvalue()

        file_name = segment_file_name(segment.segment_id)
        _atomic_write(self.directory / file_name, data)

        info = self._info_for(segment, file_name, hashlib.sha256(data).hexdigest())
        self.logger.debug(
            "Wrote segment %d (%d records, %d bytes)",
            segment.segment_id,
            len(segment),
            len(data),
        )
        return info

    def read_segment(self, info: SegmentInfo) -> Segment:
        path = self.directory / info.file_name
        try:
            data = path.read_bytes()
        except OSError as e:
            raise IndexSegmentCorrupt(info.segment_id, f"cannot read {path.name}: {e}") from e

        if info.checksum and hashlib.sha256(data).hexdigest() != info.checksum:
            raise IndexSegmentCorrupt(info.segment_id, "checksum mismatch")

        segment = self._decode(info.segment_id, data)
        if len(segment) != info.record_count:
            raise IndexSegmentCorrupt(
                info.segment_id,
                f"expected {info.record_count} records, found {len(segment)}",
            )
        return segment

    def _decode(self, segment_id: int, data: bytes) -> Segment:
        # MemoryError propagates to the caller.
        try:
            with np.load(io.BytesIO(data), allow_pickle=False) as npz:
                vectors = np.array(npz["vectors"], dtype=np.float32)
                meta = json.loads(npz["records"].item())
        except (OSError, ValueError, KeyError, zipfile.BadZipFile) as e:
            raise IndexSegmentCorrupt(segment_id, f"decode failed: {e}") from e

        if vectors.ndim != 2 or not isinstance(meta, list) or len(meta) != vectors.shape[0]:
            raise IndexSegmentCorrupt(segment_id, "vector matrix does not match record metadata")

        vectors.setflags(write=False)
        try:
            records = tuple(
                EmbeddingRecord.from_metadata(m, vectors[i]) for i, m in enumerate(meta)
            )
        except (KeyError, TypeError, ValueError) as e:
            raise IndexSegmentCorrupt(segment_id, f"bad record metadata: {e}") from e

        return Segment(
            segment_id=segment_id,
            model_version=self.model_version,
            records=records,
            vectors=vectors,
        )

    def delete_segment_file(self, info: SegmentInfo) -> None:
        (self.directory / info.file_name).unlink(missing_ok=True)

    @staticmethod
    def _info_for(segment: Segment, file_name: str, checksum: str) -> SegmentInfo:
        counts, categories = summarize_records(segment.records)
        return SegmentInfo(
            segment_id=segment.segment_id,
            file_name=file_name,
            record_count=len(segment),
            dimensions=segment.dimensions,
            checksum=checksum,
            document_counts=counts,
            categories=frozenset(categories),
        )

    # ------------------------------------------------------------------
    # Model versions
    # ------------------------------------------------------------------

    @staticmethod
    def list_model_versions(root_dir: Union[str, Path]) -> List[str]:
        root = Path(root_dir)
        if not root.exists():
            return []
        versions = []
        for child in sorted(root.iterdir()):
            manifest = child / MANIFEST_FILE
            if not manifest.is_file():
                continue
            try:
                versions.append(str(json.loads(manifest.read_text(encoding="utf-8"))["model_version"]))
            except (OSError, ValueError, KeyError):
                continue
        return versions

    @staticmethod
    def drop_model_version(root_dir: Union[str, Path], model_version: str) -> bool:
        """Delete every segment stored for `model_version`. Returns False if none existed."""
        directory = Path(root_dir) / version_dir_name(model_version)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        return True
