from artistphere.db import models
from artistphere.db.core import setup_db, teardown_db, with_db, with_optional_db

__all__ = ["models", "setup_db", "teardown_db", "with_db", "with_optional_db"]
