# Colourised console logging shared by the API, the services and the seed command.
import logging


class CustomFormatter(logging.Formatter):
    """
    A custom formatter for logging messages with different log levels.

    Attributes:
        FORMATS (dict): Maps log levels to a colourised message format.
    """
    grey = "\x1b[37;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    dark_grey = "\x1b[30;1m"
    reset = "\x1b[0m"
    format = '[%(levelname)s] %(asctime)s - %(name)s - %(message)s'

    FORMATS = {
        logging.DEBUG: dark_grey + format + reset,
        logging.INFO: grey + format + reset,
        logging.WARNING: yellow + format + reset,
        logging.ERROR: red + format + reset,
        logging.CRITICAL: bold_red + format + reset
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


ROOT_LOGGER_NAME = "blog"

_configured = False


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Attach the colourised console handler to the application's root logger.

    Safe to call more than once; the handler is only added the first time.
    """
    global _configured
    log = logging.getLogger(ROOT_LOGGER_NAME)
    log.setLevel(level)
    if not _configured:
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG)
        ch.setFormatter(CustomFormatter())
        log.addHandler(ch)
        _configured = True
    return log


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the application's root logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
