"""JSON snapshots of EDLs and analysis results."""

import logging
from typing import Optional

from ..models.analysis import AnalysisBundle
from ..models.edl import EditDecisionList
from .interface import StorageInterface


logger = logging.getLogger(__name__)


async def save_edl(storage: StorageInterface, edl: EditDecisionList, name: Optional[str] = None) -> str:
    """Store ``edl`` as ``snapshots/<name>_v<version>.json``; returns the storage path."""
    filename = f"{name or edl.project_name}_v{edl.version}.json"
    path = await storage.write_text(f"snapshots/{filename}", edl.model_dump_json(indent=2))
    logger.info(f"Saved EDL snapshot {path}")
    return path


async def load_edl(storage: StorageInterface, storage_path: str) -> EditDecisionList:
    return EditDecisionList.model_validate_json(await storage.read_text(storage_path))


async def save_analysis(storage: StorageInterface, bundle: AnalysisBundle, name: str) -> str:
    path = await storage.write_text(f"analysis/{name}.json", bundle.model_dump_json(indent=2))
    logger.info(f"Saved analysis results {path}")
    return path


async def load_analysis(storage: StorageInterface, storage_path: str) -> AnalysisBundle:
    return AnalysisBundle.model_validate_json(await storage.read_text(storage_path))
