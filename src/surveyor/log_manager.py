# surveyor/log_manager.py
import atexit
import logging
import re
from collections import defaultdict


class DeduplicatingLogHandler(logging.FileHandler):
    """
    A log handler that stops writing the same message over and over, which
    keeps the log readable when a remote service fails the same way for
    hundreds of files or folders.
    """
    # Occurrences of a message written in full before the rest are suppressed.
    max_repeats = 5

    def __init__(self, filename, mode='a', encoding=None, delay=False):
        super().__init__(filename, mode, encoding, delay)
        self.message_counts = defaultdict(int)
        self.suppressed_counts = defaultdict(int)
        # Remote ids and names are quoted in our messages; masking them groups identical failures.
        self.quoted_regex = re.compile(r"'[^']*'|\"[^\"]*\"")
        atexit.register(self.log_summary)

    def message_key(self, record: logging.LogRecord) -> str:
        return self.quoted_regex.sub("<ID>", record.getMessage())

    def emit(self, record: logging.LogRecord):
        msg_key = self.message_key(record)
        self.message_counts[msg_key] += 1

        if self.message_counts[msg_key] <= self.max_repeats:
            super().emit(record)
            self.flush()
        else:
            self.suppressed_counts[msg_key] += 1

    def log_summary(self):
        """Writes a summary of suppressed messages at exit."""
        if not self.suppressed_counts or self.stream is None:
            return

        summary_message = "\n--- Logging Summary ---\n"
        for msg_key, count in self.suppressed_counts.items():
            summary_message += f"Suppressed {count} instances of: {msg_key}\n"
        self.stream.write(summary_message)
        self.flush()
