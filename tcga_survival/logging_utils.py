from __future__ import annotations

import logging
import sys
from pathlib import Path

from tcga_survival.config import OutputFiles

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(*, out_dir: Path, level: str = "INFO", log_file: Path | None = None) -> Path:
    """Log to stdout and to <out_dir>/run.log (or log_file); returns the log file path."""
    if log_file is None:
        log_file = out_dir / OutputFiles.LOG
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate handlers on re-entry.
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file, encoding="utf-8"),
    ]
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(fmt)
        root.addHandler(h)

    logging.captureWarnings(True)
    return log_file
