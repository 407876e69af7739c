"""Console logging for the command line."""

import logging

from rich.logging import RichHandler


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[
            RichHandler(
                rich_tracebacks=True,
                markup=False,
                show_time=True,
                log_time_format="%H:%M:%S",
            )
        ],
        force=True,
    )
