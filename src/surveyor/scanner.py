# surveyor/scanner.py
import logging
import threading
from typing import Iterable, Iterator, List, Optional, Sequence

from .client import RemoteTreeClient
from .config import Config
from .errors import RemoteListingFailed, SearchCancelled
from .models import FolderNode, SkippedUnit, TargetFile


def _child_folders(children: Iterable[FolderNode]) -> List[FolderNode]:
    return [child for child in children if child.is_folder]


def _is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def find_folder(
    client: RemoteTreeClient,
    root_folder_ids: Sequence[str],
    target_name: str,
    cfg: Config,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[str]:
    """
    Finds the id of the first folder named target_name (case-insensitive).

    Roots are tried in the order given. A folder's direct children are checked
    for a match before any of them is descended into; sub-trees are then walked
    depth-first in listing order. Without recursive_folder_search only the
    direct children of each root are checked.

    Any listing failure aborts the whole search: a partially searched tree
    cannot tell "not found" from "not reachable".

    Returns:
        The folder id, or None when no folder matches.

    Raises:
        RemoteListingFailed: If any folder listing fails.
        SearchCancelled: If cancel_event is set before a match is found.
    """
    target = target_name.casefold()
    # The remote tree should be acyclic, but a folder is never listed twice.
    visited: set[str] = set()

    for root_id in root_folder_ids:
        stack = [root_id]
        while stack:
            if _is_cancelled(cancel_event):
                raise SearchCancelled(f"Search for folder '{target_name}' was cancelled")
            folder_id = stack.pop()
            if folder_id in visited:
                continue
            visited.add(folder_id)

            try:
                children = client.list_children(folder_id)
            except RemoteListingFailed as e:
                logging.error(f"Folder search for '{target_name}' aborted: {e}")
                raise

            for child in children:
                if child.is_folder and child.name.casefold() == target:
                    return child.id

            if cfg.recursive_folder_search:
                stack.extend(child.id for child in reversed(_child_folders(children)))
    return None


def _matching_files(children: Iterable[FolderNode], suffix: str) -> Iterator[TargetFile]:
    for child in children:
        if child.is_file and child.name.casefold().endswith(suffix):
            yield TargetFile.from_node(child)


def scan_folder(
    client: RemoteTreeClient,
    folder_id: str,
    cfg: Config,
    skipped: Optional[List[SkippedUnit]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[TargetFile]:
    """
    Yields every file in a folder whose name ends with cfg.file_suffix (case-insensitive).

    Direct matches come first, then, with recursive_file_search, the matches
    of each sub-folder in listing order, depth-first. A sub-folder that cannot
    be listed is logged, appended to `skipped` and left out; its siblings are
    still scanned. A failure listing `folder_id` itself propagates.
    """
    suffix = cfg.file_suffix.casefold()

    children = client.list_children(folder_id)
    yield from _matching_files(children, suffix)
    if not cfg.recursive_file_search:
        return

    visited = {folder_id}
    stack = list(reversed(_child_folders(children)))
    while stack:
        if _is_cancelled(cancel_event):
            logging.warning(f"File scan of '{folder_id}' cancelled with {len(stack)} folders left")
            return
        node = stack.pop()
        if node.id in visited:
            continue
        visited.add(node.id)

        try:
            sub_children = client.list_children(node.id)
        except RemoteListingFailed as e:
            logging.warning(f"Skipping folder '{node.name}': {e}")
            if skipped is not None:
                skipped.append(SkippedUnit(kind="folder", id=node.id, name=node.name, reason=str(e)))
            continue

        yield from _matching_files(sub_children, suffix)
        stack.extend(reversed(_child_folders(sub_children)))
