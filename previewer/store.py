"""Project store interface and a JSON-file implementation.

Records are plain dicts with camelCase keys (``id``, ``name``, ``url``,
``githubUrl``, ``manualUrls``, ``technologies``, ``framework``,
``description``, ``category``, ``imageUrl``, ``screenshotStrategy``,
``screenshotMetadata``, ``lastScreenshotAt``). The pipeline only reads the
input fields and writes back the four screenshot fields.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .models import PipelineResult, PreviewError, ProjectInput

LOGGER = logging.getLogger(__name__)

ProjectRecord = Dict[str, Any]


class ProjectNotFoundError(PreviewError, KeyError):
    """Raised when updating a project id the store does not know."""


class ProjectStore(Protocol):
    def find(self, project_id: str) -> Optional[ProjectRecord]: ...

    def update(self, project_id: str, fields: Dict[str, Any]) -> ProjectRecord: ...

    def list_projects(self) -> List[ProjectRecord]: ...


class JsonProjectStore:
    """Projects kept as a JSON array in a single file.

    A missing file reads as an empty store. Writes go through a temporary
    file that replaces the original.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> List[ProjectRecord]:
        if not self.path.exists():
            return []
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("projects", [])
        if not isinstance(data, list):
            raise PreviewError(f"Project store {self.path} must hold a JSON array")
        return data

    def _save(self, records: List[ProjectRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            json.dumps(records, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        os.replace(tmp, self.path)

    def find(self, project_id: str) -> Optional[ProjectRecord]:
        for record in self._load():
            if str(record.get("id")) == str(project_id):
                return record
        return None

    def update(self, project_id: str, fields: Dict[str, Any]) -> ProjectRecord:
        records = self._load()
        for record in records:
            if str(record.get("id")) == str(project_id):
                record.update(fields)
                self._save(records)
                LOGGER.debug("Updated project %s: %s", project_id, sorted(fields))
                return record
        raise ProjectNotFoundError(project_id)

    def list_projects(self) -> List[ProjectRecord]:
        return self._load()


def _technology_names(raw: Any) -> List[str]:
    names: List[str] = []
    for item in raw or []:
        if isinstance(item, dict):
            item = item.get("technology") or item.get("name")
        if item:
            names.append(str(item))
    return names


def project_input_from_record(record: ProjectRecord) -> ProjectInput:
    """Map a store record onto the pipeline input."""
    return ProjectInput(
        id=str(record.get("id") or ""),
        name=str(record.get("name") or ""),
        deployment_url=record.get("url") or None,
        source_repo_url=record.get("githubUrl") or None,
        manual_urls=[str(url) for url in record.get("manualUrls") or [] if url],
        framework=record.get("framework") or None,
        technologies=_technology_names(record.get("technologies")),
        description=record.get("description") or None,
        category=record.get("category") or None,
    )


def result_update_fields(
    result: PipelineResult, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Fields written back to the store for a successful result."""
    timestamp = now or datetime.now(timezone.utc)
    return {
        "imageUrl": result.final_image_path,
        "screenshotStrategy": result.strategy,
        "screenshotMetadata": result.metadata.to_dict(),
        "lastScreenshotAt": timestamp.isoformat(),
    }
