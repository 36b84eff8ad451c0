import logging

from rich.console import Console
from rich.logging import RichHandler

# Logs go to stderr; the report is printed to stdout
error_console = Console(stderr=True, highlight=False)


class AppLogHandler(RichHandler):
    """A rich log handler writing to stderr."""
    def __init__(self, *args, **kwargs):
        super().__init__(
            *args,
            **kwargs,
            console=error_console,
            show_path=False,
            show_level=True,
            show_time=False,
            rich_tracebacks=True,
            markup=False
        )
        self.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))


def setup_logging(level="WARNING"):
    """Configure the root logger with a single AppLogHandler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(AppLogHandler())
