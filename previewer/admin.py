"""Authenticated operator trigger for preview generation.

Selects projects from the store, runs the pipeline, and writes successful
results back. Callers without the admin secret get a bare "Unauthorized".
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Callable, Dict, List, Optional

from .config import PreviewSettings
from .models import InvalidProjectError, PipelineResult, PreviewError, ProjectInput
from .orchestrator import PreviewOrchestrator
from .store import ProjectStore, project_input_from_record, result_update_fields

LOGGER = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], PreviewOrchestrator]


class AdminAuthError(PreviewError):
    """Raised for a missing or wrong admin secret. Carries no detail."""

    def __init__(self) -> None:
        super().__init__("Unauthorized")


def _bearer_value(token: Optional[str]) -> str:
    token = (token or "").strip()
    if token.lower().startswith("bearer "):
        token = token[len("bearer ") :].strip()
    return token


def _result_summary(result: PipelineResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "strategy": result.used_strategy,
        "imagePath": result.final_image_path,
        "error": result.error,
        "metadata": result.metadata.to_dict(),
    }


class AdminTrigger:
    """Run the pipeline for one project, a list of projects, or all pending."""

    def __init__(
        self,
        store: ProjectStore,
        settings: Optional[PreviewSettings] = None,
        *,
        orchestrator_factory: Optional[OrchestratorFactory] = None,
    ) -> None:
        self.store = store
        self.settings = settings or PreviewSettings.from_env()
        self._orchestrator_factory = orchestrator_factory or (
            lambda: PreviewOrchestrator(settings=self.settings)
        )

    def authorize(self, token: Optional[str]) -> None:
        secret = self.settings.admin_secret
        if not secret:
            LOGGER.warning("PREVIEW_ADMIN_SECRET is not set; rejecting admin request")
            raise AdminAuthError()
        if not hmac.compare_digest(
            _bearer_value(token).encode("utf-8"), secret.encode("utf-8")
        ):
            raise AdminAuthError()

    async def run(
        self,
        token: Optional[str],
        project_id: Optional[str] = None,
        project_ids: Optional[List[str]] = None,
        force_regenerate: bool = False,
    ) -> Dict[str, Any]:
        """Authorize, then :meth:`generate`.

        Raises:
            AdminAuthError: If *token* does not match the admin secret.
        """
        self.authorize(token)
        return await self.generate(
            project_id=project_id,
            project_ids=project_ids,
            force_regenerate=force_regenerate,
        )

    async def generate(
        self,
        project_id: Optional[str] = None,
        project_ids: Optional[List[str]] = None,
        force_regenerate: bool = False,
    ) -> Dict[str, Any]:
        """Select projects, run the pipeline, persist successful results.

        A single id wins over a list; with neither, every project still
        lacking an image is processed. Projects that already have an image
        are left alone unless *force_regenerate* is set.
        """
        if project_id:
            return await self._run_single(project_id, force_regenerate)
        if project_ids is not None:
            wanted = {str(pid) for pid in project_ids}
            records = [
                record
                for record in self.store.list_projects()
                if str(record.get("id")) in wanted
                and (force_regenerate or not record.get("imageUrl"))
            ]
            return await self._run_bulk(records, requested=len(wanted))
        records = [
            record
            for record in self.store.list_projects()
            if force_regenerate or not record.get("imageUrl")
        ]
        return await self._run_bulk(records, requested=None)

    async def _run_single(self, project_id: str, force: bool) -> Dict[str, Any]:
        record = self.store.find(project_id)
        if record is None:
            return {"success": False, "error": "Project not found"}

        if record.get("imageUrl") and not force:
            return {
                "success": True,
                "message": "Project already has screenshot",
                "skipped": True,
                "existingImageUrl": record["imageUrl"],
            }

        project = project_input_from_record(record)
        try:
            project.validate()
        except InvalidProjectError as exc:
            return {"success": False, "error": str(exc)}

        LOGGER.info("Generating preview for %s", project.name)
        async with self._orchestrator_factory() as orchestrator:
            result = await orchestrator.generate_smart_screenshot(project)

        if result.success and result.final_image_path:
            self.store.update(project.id, result_update_fields(result))
            return {
                "success": True,
                "message": "Preview generated successfully",
                "screenshotPath": result.final_image_path,
                "strategy": result.strategy,
                "metadata": result.metadata.to_dict(),
            }
        return {
            "success": False,
            "message": "Failed to generate preview",
            "error": result.error,
            "metadata": result.metadata.to_dict(),
        }

    async def _run_bulk(
        self, records: List[Dict[str, Any]], requested: Optional[int]
    ) -> Dict[str, Any]:
        if not records:
            payload: Dict[str, Any] = {
                "success": True,
                "message": "No projects need previews",
            }
            if requested is not None:
                payload["skipped"] = requested
            return payload

        projects: List[ProjectInput] = []
        rejected: Dict[str, Dict[str, Any]] = {}
        for record in records:
            project = project_input_from_record(record)
            try:
                project.validate()
            except InvalidProjectError as exc:
                LOGGER.warning("Skipping invalid project record %r: %s", record.get("id"), exc)
                rejected[str(record.get("id"))] = {"success": False, "error": str(exc)}
                continue
            projects.append(project)

        results: Dict[str, Dict[str, Any]] = {}
        success_count = 0
        strategy_stats: Dict[str, int] = {}
        if projects:
            async with self._orchestrator_factory() as orchestrator:
                bulk = await orchestrator.generate_bulk(projects)

            for pid, result in bulk.results.items():
                if result.success and result.final_image_path:
                    self.store.update(pid, result_update_fields(result))
                results[pid] = _result_summary(result)
            success_count = bulk.success_count
            strategy_stats = bulk.strategy_counts

        results.update(rejected)
        total = len(records)
        return {
            "success": True,
            "message": f"Generated {success_count} previews out of {total} projects",
            "successCount": success_count,
            "totalProjects": total,
            "strategyStats": strategy_stats,
            "results": results,
        }
