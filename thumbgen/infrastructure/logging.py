import logging
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(log_path: Path, debug: bool = False) -> logging.Logger:
    """Routes all log records of a thumbgen run to `log_path`.

    The file is appended to, so consecutive runs share one log. Debug mode
    adds the tool command lines, stderr tails and catalog entries.
    Returns the `thumbgen` package logger.
    """
    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file, mode="a", encoding="utf-8")],
        force=True,  # CliRunner and repeated runs reconfigure the root logger
    )

    logger = logging.getLogger("thumbgen")
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")
    return logger
