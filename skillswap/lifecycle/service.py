import logging
from typing import Any, Callable, Optional, Tuple
from uuid import UUID

from skillswap.db.firebase_ops import FirestoreBaseModel
from skillswap.models.schemas import Project

logger = logging.getLogger(__name__)


def apply_project_transition(
    firestore_ops: FirestoreBaseModel,
    project_id: UUID,
    transition: Callable[[Project], Any],
) -> Tuple[Optional[Project], Any]:
    """
    Run a transition from `skillswap.lifecycle.transitions` as a single atomic
    write of the project document.

    `transition` returns either the new Project or a (Project, extra) tuple;
    the extra value (e.g. the bid that was created) is handed back unchanged.
    Returns (None, None) when the document is missing or the store failed.
    """
    outcome = {}

    def mutate(data):
        result = transition(Project(**data))
        project, extra = result if isinstance(result, tuple) else (result, None)
        # The store may retry; only the last attempt's outcome is kept.
        outcome["extra"] = extra
        return project.model_dump(mode="json")

    written = firestore_ops.transact(collection_name="projects", document_id=str(project_id), mutate=mutate)
    if written is None:
        return None, None
    return Project(**written), outcome.get("extra")
