# surveyor/explorer.py
import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Union

from . import config, reporter, scanner
from .aggregator import Aggregator, ProgressCallback
from .client import RemoteTreeClient
from .config import Config
from .errors import ConfigError, NoDataError
from .models import Report, ReportTable, SearchResult, SkippedUnit, TargetFile


class Explorer:
    """Orchestrates the folder search, attribute collection and report export workflow."""

    def __init__(
        self,
        client: RemoteTreeClient,
        app_config: Optional[Config] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            client: The remote repository client.
            app_config: An optional Config object. If not provided, it's loaded from file.
                Config objects are immutable, so this is the snapshot used for every call.
            cancel_event: An optional event shared with other components; see cancel().
        """
        self.app_config = app_config or config.load_config()
        self.client = client
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        """Stops starting new listings, files and batches. In-flight requests still finish."""
        self.cancel_event.set()

    def root_folders(self, project_id: Optional[str] = None, root_folder_ids: Sequence[str] = ()) -> List[str]:
        """
        Resolves where a search starts: explicit ids first, then the configured
        'root_folder_ids', then the root folder of the (given or configured) project.
        """
        ids = list(root_folder_ids) or list(self.app_config.root_folder_ids)
        if ids:
            return ids
        project_id = project_id or self.app_config.project_id
        if not project_id:
            raise ConfigError("No root folders or project configured. Use --project, --root or 'project_id' in surveyor.toml.")
        return self.client.project_root_folders(project_id)

    def search(self, root_folder_ids: Sequence[str], target_folder_name: str) -> SearchResult:
        """
        Finds the target folder and lists its matching files.

        A missing folder is a normal negative result (SearchResult.found is
        False). Folder resolution fails fast on listing errors, while sub-folders
        that cannot be listed during file enumeration are recorded in
        SearchResult.skipped. If the search is cancelled during enumeration,
        SearchResult.cancelled is set and the file list may be incomplete.
        """
        folder_id = scanner.find_folder(
            self.client, root_folder_ids, target_folder_name, self.app_config, cancel_event=self.cancel_event
        )
        if folder_id is None:
            logging.info(f"Folder '{target_folder_name}' not found")
            return SearchResult(folder_id=None)

        skipped: List[SkippedUnit] = []
        files = list(scanner.scan_folder(
            self.client, folder_id, self.app_config, skipped=skipped, cancel_event=self.cancel_event
        ))
        return SearchResult(folder_id=folder_id, files=files, skipped=skipped, cancelled=self.cancel_event.is_set())

    def build_report(self, files: Sequence[TargetFile], on_progress: Optional[ProgressCallback] = None) -> Report:
        """
        Collects the attributes of every object in files and assembles the report table.

        Raises:
            NoDataError: If there are no files or no object could be collected.
                Files skipped along the way are attached to the error.
        """
        if not files:
            raise NoDataError()

        aggregator = Aggregator(self.client, self.app_config, cancel_event=self.cancel_event)
        records = aggregator.run(files, progress=on_progress)
        if not records:
            raise NoDataError(aggregator.skipped)

        table = reporter.assemble_table(records, self.app_config)
        return Report(
            table=table,
            skipped=aggregator.skipped,
            files_processed=aggregator.files_processed,
            cancelled=aggregator.cancelled,
        )

    def export_table(self, table: ReportTable) -> bytes:
        return reporter.export_table(table, delimiter=self.app_config.delimiter)

    def write_report(self, table: ReportTable, output_dir: Union[str, Path]) -> Path:
        """Writes the exported table to '<report_base_name>_<ISO-date>.csv' in output_dir."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / reporter.report_filename(self.app_config.report_base_name)
        output_path.write_bytes(self.export_table(table))
        return output_path
