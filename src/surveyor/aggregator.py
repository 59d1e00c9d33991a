# surveyor/aggregator.py
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional, Sequence

from .client import RemoteTreeClient
from .config import WILDCARD, Config
from .errors import RemoteListingFailed, RemoteReadFailed
from .models import AttributeRecord, ObjectProperties, Property, Scalar, SkippedUnit, TargetFile

ProgressCallback = Callable[[float], None]


def select_attributes(properties: Iterable[Property], attribute_set_names: Sequence[str]) -> Dict[str, Scalar]:
    """
    Keeps the properties belonging to one of the configured attribute sets.

    Attribute names are conventionally '<SetName>.<PropertyName>', so a set
    name matches by prefix. A '*' entry keeps everything. When the same name
    occurs twice the later value wins.
    """
    include_all = WILDCARD in attribute_set_names
    attributes: Dict[str, Scalar] = {}
    for prop in properties:
        if include_all or any(prop.name.startswith(set_name) for set_name in attribute_set_names):
            attributes[prop.name] = prop.value
    return attributes


def make_batches(items: Sequence[str], batch_size: int) -> List[List[str]]:
    """Splits items into consecutive lists of at most batch_size elements."""
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class ProgressTracker:
    """
    Forwards progress fractions to a callback, never letting them go backwards.

    The estimate is coarse on purpose: 0-0.5 follows the index of the file whose
    entities are being listed, 0.5-1.0 follows the batches done in the current
    file. Without clamping, starting the next file would jump back below 0.5.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.value = 0.0

    def report(self, fraction: float):
        fraction = min(max(fraction, self.value), 1.0)
        self.value = fraction
        if self.callback:
            self.callback(fraction)


class Aggregator:
    """Collects the filtered attribute records of every object in a list of files."""

    def __init__(self, client: RemoteTreeClient, cfg: Config, cancel_event: Optional[threading.Event] = None):
        """
        Args:
            client: The remote client used to list entities and fetch attributes.
            cfg: The configuration snapshot for this run.
            cancel_event: When set, no further files or batches are started.
        """
        self.client = client
        self.cfg = cfg
        self.cancel_event = cancel_event or threading.Event()
        self.skipped: List[SkippedUnit] = []
        self.files_processed = 0
        self.cancelled = False

    def _check_cancelled(self) -> bool:
        if self.cancel_event.is_set():
            self.cancelled = True
        return self.cancelled

    def run(self, files: Sequence[TargetFile], progress: Optional[ProgressCallback] = None) -> List[AttributeRecord]:
        """
        Processes files one after the other and returns their records in
        file-then-entity order.

        A file whose entities or attributes cannot be read is logged, recorded
        in self.skipped and left out entirely; the remaining files still run.
        A file interrupted by cancellation is dropped as a whole and no later
        file is started.
        """
        tracker = ProgressTracker(progress)
        records: List[AttributeRecord] = []
        total = len(files)

        with ThreadPoolExecutor(max_workers=self.cfg.workers) as executor:
            for index, target_file in enumerate(files):
                if self._check_cancelled():
                    logging.warning(f"Attribute collection cancelled after {index} of {total} files")
                    break
                tracker.report(0.5 * index / total)
                try:
                    file_records = self._process_file(executor, target_file, tracker)
                except (RemoteListingFailed, RemoteReadFailed) as e:
                    logging.error(f"Error processing file '{target_file.name}': {e}")
                    self.skipped.append(SkippedUnit(kind="file", id=target_file.id, name=target_file.name, reason=str(e)))
                    continue
                if file_records is None:
                    logging.warning(f"Attribute collection cancelled; discarding the partial records of '{target_file.name}'")
                    break
                records.extend(file_records)
                self.files_processed += 1

        if not self.cancelled:
            tracker.report(1.0)
        return records

    def _process_file(self, executor: ThreadPoolExecutor, target_file: TargetFile, tracker: ProgressTracker) -> Optional[List[AttributeRecord]]:
        """Returns the records of one file, or None if cancellation left batches unfetched."""
        entities = self.client.list_entities(target_file.id)
        batches = make_batches([entity.id for entity in entities], self.cfg.batch_size)
        records: List[AttributeRecord] = []
        if not batches:
            return records

        # At most `workers` fetches are in flight; results are consumed in
        # submission order so records keep the entity listing order.
        batch_iter: Iterator[List[str]] = iter(batches)
        pending: Deque[Future] = deque()

        def submit_next() -> bool:
            if self._check_cancelled():
                return False
            batch = next(batch_iter, None)
            if batch is None:
                return False
            pending.append(executor.submit(self.client.fetch_attributes, target_file.id, batch))
            return True

        while len(pending) < self.cfg.workers and submit_next():
            pass

        done = 0
        try:
            while pending:
                objects: List[ObjectProperties] = pending.popleft().result()
                submit_next()
                for obj in objects:
                    records.append(AttributeRecord(
                        object_id=obj.id,
                        object_name=obj.name,
                        object_type=obj.type,
                        attributes=select_attributes(obj.properties, self.cfg.attribute_set_names),
                        source_file=target_file,
                    ))
                done += 1
                tracker.report(0.5 + 0.5 * done / len(batches))
        except BaseException:
            for future in pending:
                future.cancel()
            raise
        if done < len(batches):
            return None
        return records
