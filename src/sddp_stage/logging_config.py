from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path


LOG_FORMAT = "%(asctime)s %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", log_dir: str | Path | None = None) -> Path | None:
    """Configure root logging for stage solves.

    With `log_dir`, DEBUG records are also written to a timestamped file in
    that directory, whose path is returned.
    """
    lvl = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=lvl, format=LOG_FORMAT)
    logging.getLogger("sddp_stage").setLevel(lvl)

    if log_dir is None:
        return None
    out_dir = Path(log_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = out_dir / f"sddp_stage_{ts}.txt"
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(fh)
    return log_path


__all__ = ["LOG_FORMAT", "setup_logging"]
