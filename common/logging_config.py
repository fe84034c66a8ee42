import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(service_name: str) -> logging.Logger:
    """
    Configure root logging once for a service and return its logger.

    The level comes from LOG_LEVEL (default INFO). Calling this more than
    once, e.g. when several services are imported by the test suite, keeps
    the first configuration.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return logging.getLogger(service_name)
