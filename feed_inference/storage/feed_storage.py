"""
File-based storage for raw feed payloads and analysis artifacts.

Directory layout under ``base_dir``::

    raw/
        manifest.json                   index of every download
        {md5_of_url}/
            {timestamp}.json            raw payload
            {timestamp}.meta.json       download metadata
    analysis/
        discovery_log.json
        schema_{label}.json
        graph_{label}.json
        relationships.json
        report.json
"""

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from ..ingestion.feed_client import FetchResult
from ..utils.exceptions import StorageError
from ..utils.types import JSON

logger = logging.getLogger(__name__)


def url_hash(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()


class FeedFileStorage:
    """Persist raw payloads with metadata sidecars and JSON analysis artifacts."""

    def __init__(self, base_dir: Union[str, Path] = "data/feed"):
        self.base_dir = Path(base_dir)
        self.raw_dir = self.base_dir / "raw"
        self.analysis_dir = self.base_dir / "analysis"
        self.manifest_path = self.raw_dir / "manifest.json"
        self._manifest_lock = threading.Lock()

        self.raw_dir.mkdir(parents=True, exist_ok=True)
        self.analysis_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Raw payloads
    # ------------------------------------------------------------------

    def save_raw(self, result: FetchResult) -> str:
        """
        Save a downloaded payload and its metadata sidecar.

        Args:
            result: Successful fetch result

        Returns:
            Path of the stored JSON payload
        """
        directory = self.raw_dir / url_hash(result.url)
        directory.mkdir(parents=True, exist_ok=True)

        # Microseconds keep consecutive pages from colliding
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S-%f")
        json_path = directory / f"{timestamp}.json"
        meta_path = directory / f"{timestamp}.meta.json"

        json_path.write_bytes(result.body)

        meta = {
            "url": result.url,
            "label": result.label,
            "checksum": result.checksum(),
            "payload_bytes": result.size_bytes(),
            "payload_human": result.human_size(),
            "http_status": result.http_status,
            "download_seconds": result.elapsed_seconds,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "json_path": str(json_path),
        }
        meta_path.write_text(json.dumps(meta, indent=2, ensure_ascii=False), encoding="utf-8")
        self._append_manifest(meta)

        logger.info(f"Raw payload saved: {json_path} ({result.human_size()})")
        return str(json_path)

    def load_raw(self, path: Union[str, Path]) -> bytes:
        """Read a stored payload, raising ``StorageError`` if it is missing."""
        payload_path = Path(path)
        if not payload_path.is_file():
            raise StorageError(f"Raw feed file not found: {payload_path}")
        return payload_path.read_bytes()

    def latest_raw_path(self, url: str) -> Optional[str]:
        """Most recent stored payload for ``url``, or None."""
        directory = self.raw_dir / url_hash(url)
        if not directory.is_dir():
            return None
        payloads = sorted(
            path for path in directory.glob("*.json") if not path.name.endswith(".meta.json")
        )
        return str(payloads[-1]) if payloads else None

    def latest_raw_files(self) -> List[JSON]:
        """Latest stored payload per URL, from the manifest."""
        by_url: Dict[str, Dict[str, Any]] = {}
        for entry in self.load_manifest():
            url = entry.get("url")
            if url:
                by_url[url] = entry

        files = []
        for url, entry in by_url.items():
            path = entry.get("json_path")
            if path and Path(path).is_file():
                files.append(
                    {
                        "url": url,
                        "label": entry.get("label") or url_hash(url),
                        "path": path,
                        "meta": entry,
                    }
                )
        return files

    def raw_history(self, url: str) -> List[JSON]:
        """Every stored snapshot for ``url``, oldest first."""
        directory = self.raw_dir / url_hash(url)
        if not directory.is_dir():
            return []

        history = []
        for meta_path in sorted(directory.glob("*.meta.json")):
            try:
                meta = json.loads(meta_path.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning(f"Skipping unreadable metadata file {meta_path}")
                continue
            history.append(
                {
                    "path": meta.get("json_path", ""),
                    "saved_at": meta.get("saved_at", ""),
                    "bytes": meta.get("payload_bytes", 0),
                    "checksum": meta.get("checksum", ""),
                }
            )
        return history

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def load_manifest(self) -> List[JSON]:
        if not self.manifest_path.is_file():
            return []
        try:
            data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning(f"Raw manifest {self.manifest_path} is corrupt, starting a new one")
            return []
        return data if isinstance(data, list) else []

    def _append_manifest(self, entry: Dict[str, Any]) -> None:
        with self._manifest_lock:
            manifest = self.load_manifest()
            manifest.append(entry)
            self.manifest_path.write_text(
                json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8"
            )

    # ------------------------------------------------------------------
    # Analysis artifacts
    # ------------------------------------------------------------------

    def save_json(self, name: str, payload: Any) -> str:
        """
        Write an analysis artifact as pretty-printed JSON.

        Pydantic models are dumped in JSON mode with field aliases, so graph
        edges keep their ``from``/``to`` keys.
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True)

        path = self.analysis_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info(f"Analysis artifact saved: {path}")
        return str(path)

    def load_json(self, name: str) -> Any:
        path = self.analysis_dir / name
        if not path.is_file():
            raise StorageError(f"Analysis artifact not found: {path}")
        return json.loads(path.read_text(encoding="utf-8"))

    def analysis_files(self) -> List[str]:
        return sorted(path.name for path in self.analysis_dir.glob("*.json"))
