import sys, logging
from logging.handlers import RotatingFileHandler
from tqdm import tqdm

LOGGER_NAME = "pipeshaper"

BASE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
# at DEBUG every backend argv is logged; show which layer issued it
DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(module)s:%(lineno)d %(message)s"


class TqdmStreamHandler(logging.StreamHandler):
    # Route records through tqdm.write so batch progress bars are not torn.
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


class PairAdapter(logging.LoggerAdapter):
    """Prefixes every message with the (address, direction) being worked on."""

    def process(self, msg, kwargs):
        return f"[{self.extra['address']} {self.extra['direction']}] {msg}", kwargs


def setup_logging(*, level: str="INFO", quiet: bool=False, log_file: str|None=None, use_tqdm_handler: bool=True):
    level = level.upper()
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(level)
    for h in list(log.handlers):
        log.removeHandler(h)

    fmt = logging.Formatter(DEBUG_FORMAT if level == "DEBUG" else BASE_FORMAT)

    # paramiko logs every channel open at INFO; only let it through when debugging
    logging.getLogger("paramiko").setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)

    if not quiet:
        h = TqdmStreamHandler() if use_tqdm_handler else logging.StreamHandler(stream=sys.stderr)
        h.setLevel(level)
        h.setFormatter(fmt)
        log.addHandler(h)

    if log_file:
        fh = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(fmt)
        log.addHandler(fh)

    return log


def get_logger():
    return logging.getLogger(LOGGER_NAME)


def pair_logger(address, direction) -> PairAdapter:
    """Logger for one shaped pair; `direction` may be a Direction or its token."""
    token = getattr(direction, "token", direction)
    return PairAdapter(get_logger(), {"address": str(address), "direction": token})
