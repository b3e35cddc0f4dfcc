# utrace/logging_config.py
import logging
import sys

_LOG_FORMAT = '%(asctime)s %(levelname)-3s [%(name)s] %(message)s'
_LOG_FORMAT_DATE = '%y-%m-%d %H:%M:%S'


class ColorFormatter(logging.Formatter):

    _GREY     = "\x1b[37m"
    _YELLOW   = "\x1b[33m"
    _RED      = "\x1b[31m"
    _BOLD_RED = "\x1b[31;1m"
    _RESET    = "\x1b[0m"

    _FORMATS = {
        logging.DEBUG    : _GREY     + _LOG_FORMAT + _RESET,
        logging.INFO     :             _LOG_FORMAT         ,
        logging.WARNING  : _YELLOW   + _LOG_FORMAT + _RESET,
        logging.ERROR    : _RED      + _LOG_FORMAT + _RESET,
        logging.CRITICAL : _BOLD_RED + _LOG_FORMAT + _RESET,
    }

    def format(self, record):
        formatter = logging.Formatter(self._FORMATS.get(record.levelno, _LOG_FORMAT), _LOG_FORMAT_DATE)
        return formatter.format(record)


def setup_logging(level: str = "info", color: bool = True) -> None:
    handler = logging.StreamHandler(sys.stderr)
    if color and sys.stderr.isatty():
        handler.setFormatter(ColorFormatter())
    else:
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, _LOG_FORMAT_DATE))

    logging.addLevelName(logging.INFO, 'INF')
    logging.addLevelName(logging.DEBUG, 'DBG')
    logging.addLevelName(logging.WARNING, 'WRN')
    logging.addLevelName(logging.ERROR, 'ERR')
    logging.addLevelName(logging.CRITICAL, 'CRT')

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
    # aiohttp's access log duplicates the request middleware
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
