#!/usr/bin/env python3
import sys
import traceback
from types import TracebackType
from typing import Type

from loguru import logger

from packlauncher.cli.main import cli


def handle_exception(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical(
        "An uncaught exception occurred:\n"
        + "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )


if __name__ == "__main__":
    sys.excepthook = handle_exception
    cli(prog_name="packlauncher")
