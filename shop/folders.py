# shop/folders.py
import sqlite3
from typing import List, Optional, Sequence

from .errors import Result, ValidationError, failure, success
from .logger import get_logger
from .models import Folder, User
from .storage import FolderRepository, UsageRepository
from .usage import track_use_time

logger = get_logger(__name__)


def find_duplicate_names(names: Sequence[str], existing: Sequence[Folder]) -> List[str]:
    """
    Names that cannot be created: already owned (exact, case-sensitive match)
    or repeated within ``names`` itself. Order follows ``names``.
    """
    taken = {f.name for f in existing}
    seen: set[str] = set()
    dupes: List[str] = []
    for name in names:
        if name in taken or name in seen:
            if name not in dupes:
                dupes.append(name)
        seen.add(name)
    return dupes


class FolderCatalog:
    def __init__(
        self,
        folders: FolderRepository,
        usage: Optional[UsageRepository] = None,
    ):
        self.folders = folders
        self.usage = usage

    @track_use_time("owner")
    def create_folders(self, names: Sequence[str], owner: User) -> Result[List[Folder]]:
        """
        Create every folder in ``names`` for ``owner``, or none of them.
        One duplicate anywhere in the batch rejects the whole batch.
        """
        names = list(names)
        if not names:
            return success([])

        existing = self.folders.find_all_by_owner_and_name_in(owner, names)
        dupes = find_duplicate_names(names, existing)
        if dupes:
            logger.info(
                "Rejected folder batch for user %s; duplicate names: %s",
                owner.id, dupes,
            )
            return failure(
                ValidationError(f"Duplicate folder name(s): {', '.join(dupes)}")
            )

        try:
            created = self.folders.save_all(
                [Folder(id=None, name=n, owner_id=owner.id) for n in names]
            )
        except sqlite3.IntegrityError as e:
            # Concurrent request created one of the names after our lookup.
            logger.warning("Folder batch for user %s hit a constraint: %s", owner.id, e)
            return failure(ValidationError("Duplicate folder name in batch."))

        logger.info("Created %d folder(s) for user %s.", len(created), owner.id)
        return success(created)

    @track_use_time("owner")
    def list_for_owner(self, owner: User) -> List[Folder]:
        return self.folders.find_all_by_owner(owner)
