from .base import *  # noqa

DEBUG = True
ALLOWED_HOSTS = ["*"]

# Local DB: sqlite unless DATABASE_URL is provided.
DATABASE_URL = os.environ.get("DATABASE_URL", None)
if DATABASE_URL:
    import dj_database_url

    DATABASES["default"] = dj_database_url.parse(DATABASE_URL, conn_max_age=60)
