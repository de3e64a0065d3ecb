import os


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY") or "content_pipeline_key"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or "sqlite:///content_pipeline.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Model provider; a missing key only fails the calls that need it
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
    OPENAI_IMAGE_MODEL = os.environ.get("OPENAI_IMAGE_MODEL", "dall-e-3")

    GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")
    GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")

    SCRAPER_MAX_PAGES = int(os.environ.get("SCRAPER_MAX_PAGES", 5))
    SCRAPER_TIMEOUT = float(os.environ.get("SCRAPER_TIMEOUT", 10))
    SCRAPER_REQUEST_DELAY = float(os.environ.get("SCRAPER_REQUEST_DELAY", 0.5))

    BACKGROUND_WORKERS = int(os.environ.get("BACKGROUND_WORKERS", 4))
    BACKGROUND_JOBS_SYNC = _env_bool("BACKGROUND_JOBS_SYNC")

    DEFAULT_IDEA_COUNT = 5
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    OPENAI_API_KEY = None
    GITHUB_TOKEN = None
    SCRAPER_REQUEST_DELAY = 0.0
    BACKGROUND_JOBS_SYNC = True
