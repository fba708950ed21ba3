from artistphere.server.config import config
from artistphere.log import configure_logging

configure_logging(config.log_level, config.log_file)

from artistphere.server.core import app


__all__ = ["app"]
