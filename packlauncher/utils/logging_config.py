import sys

import loguru
from loguru import logger

from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.obfuscate_message import obfuscate_message


def formatter(record: "loguru.Record") -> str:
    """Custom formatter for loguru logger"""
    format_string = (
        "[{level}]"
        "[{time:YYYY-MM-DD HH:mm:ss}]"
        "[{process.id}]"
        "[{thread.name}]"
        "[{module}]"
        "[{function}][{line}]"
        " : "
    )

    record["extra"]["obfuscated_message"] = obfuscate_message(record["message"])
    return format_string + "{extra[obfuscated_message]}\n"


def setup_logging(debug: bool = False, stderr_level: str = "WARNING") -> None:
    """
    Route loguru output to the rotating log file and stderr.

    The log level is DEBUG when ``debug`` is set or a "DEBUG" file exists in
    the app storage folder, INFO otherwise.
    """
    debug_file_path = AppInfo().app_storage_folder / "DEBUG"
    debug_mode = debug or (debug_file_path.exists() and debug_file_path.is_file())

    # We have log_file (foo.log) and old_log_file (foo.old.log). If old_log_file exists,
    # remove it. If log_file exists, rename it to old_log_file.
    log_file = AppInfo().user_log_folder / (AppInfo().app_name + ".log")
    old_log_file = AppInfo().user_log_folder / (AppInfo().app_name + ".old.log")
    if old_log_file.exists() and old_log_file.is_file():
        old_log_file.unlink()
    if log_file.exists() and log_file.is_file():
        log_file.rename(old_log_file)

    # Remove the default stderr logger
    logger.remove()

    logger.add(log_file, level="DEBUG" if debug_mode else "INFO", format=formatter)

    logger.add(
        sys.stderr,
        level=stderr_level,
        format=formatter,
        colorize=False,
    )

    logger.debug(f"Logging to {log_file} (debug={debug_mode})")
