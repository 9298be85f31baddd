"""
Run logging for Pong DQN.

Two sinks are used during training:
- setup_logger: the human-readable run log (stdout plus training.log)
- SafeCSVLogger: one CSV row per finished episode (training_log.csv)

Both write through to disk often enough that a run killed mid-way
leaves usable logs behind.
"""

import csv
import sys
import logging
from typing import Dict, Any, Optional, List, Union
from pathlib import Path

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"


class _FlushingFileHandler(logging.FileHandler):
    """File handler that pushes every record straight to disk."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def setup_logger(
    name: str = "pong_dqn",
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Configure the named run logger.

    Calling this twice for the same name replaces the previous handlers
    instead of stacking them. The console only shows records at `level`;
    the log file keeps DEBUG records too (per-episode lines).

    Args:
        name: Logger name, e.g. "pong_dqn.train"
        level: Console threshold name ("DEBUG", "INFO", ...)
        log_file: training.log path inside the run directory, or None
        console: Echo records to stdout
        format_string: Override for DEFAULT_FORMAT

    Returns:
        The configured logger (does not propagate to the root logger)

    Example:
        >>> logger = setup_logger("pong_dqn.train", log_file=run_dir / "training.log")
        >>> logger.info("Step 10000/1400000 | Reward: -21.00 | Loss: 0.0031")
    """
    threshold = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(threshold)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setLevel(threshold)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = _FlushingFileHandler(log_path, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


class SafeCSVLogger:
    """
    Episode table writer.

    Writes the header on open and one row per `log` call. Rows reach
    the disk every flush_every episodes, on `flush` (the trainer calls
    it at each checkpoint) and on close.

    Args:
        filepath: CSV destination, truncated on open
        fieldnames: Column order, e.g. trainer.CSV_FIELDS
        flush_every: Episodes between automatic flushes

    Example:
        >>> with SafeCSVLogger(run_dir / "training_log.csv", CSV_FIELDS) as csv_log:
        ...     trainer = Trainer(env, agent, buffer, config, run_dir, csv_logger=csv_log)
        ...     trainer.run()
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        fieldnames: List[str],
        flush_every: int = 10
    ) -> None:
        self.filepath = Path(filepath)
        self.fieldnames = list(fieldnames)
        self.flush_every = flush_every
        self._rows = 0
        self._closed = False

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.filepath, 'w', newline='', encoding='utf-8')
        self._writer = csv.DictWriter(self._file, fieldnames=self.fieldnames)
        self._writer.writeheader()
        self._file.flush()

    def log(self, row: Dict[str, Any]) -> None:
        """Append one episode row; keys must be a subset of fieldnames."""
        if self._closed:
            raise RuntimeError(f"CSV log {self.filepath} is already closed")

        self._writer.writerow(row)
        self._rows += 1
        if self._rows % self.flush_every == 0:
            self._file.flush()

    def flush(self) -> None:
        if not self._closed:
            self._file.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._file.flush()
        self._file.close()
        self._closed = True

    def __enter__(self) -> "SafeCSVLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
