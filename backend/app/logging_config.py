import logging

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    # Clear existing handlers to avoid duplicate logs on reload
    root.handlers = []
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
