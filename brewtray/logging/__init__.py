from pathlib import Path
from typing import Final

from logly import _LoggerProxy, logger

LOG_DIR_PATH: Final[Path] = Path(__file__).parent.parent / "logs"


def init_logger(level: str = "INFO", log_dir: Path | None = None) -> _LoggerProxy:
    """Initialize the logger.

    Configures console output plus a size-limited file sink that keeps the last
    few rotated files.

    Args:
        level: Minimum level to record.
        log_dir: Directory for `brewtray.log`; defaults to `LOG_DIR_PATH`.
    """
    target_dir = log_dir or LOG_DIR_PATH

    logger.configure(
        level=level,
        color=True,
        console=True,
        auto_sink=True,
    )

    logger.add(f"{target_dir}/brewtray.log", size_limit="10MB", retention=3)

    logger.success("logger initialized!")

    return logger
