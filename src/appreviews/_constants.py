"""Internal constants shared across the package."""

USER_AGENT = "AppReviewPoller/1.0"
FEED_URL_TEMPLATE = "https://itunes.apple.com/{country}/rss/customerreviews/id={app_id}/sortBy=mostRecent/page=1/json"
DEFAULT_COUNTRY = "us"
DEFAULT_FETCH_TIMEOUT: float = 30.0
DEFAULT_POLL_INTERVAL: float = 5 * 60
DEFAULT_STORAGE_PATH = "data/reviews.json"
DEFAULT_APPS_FILE = "config/apps.json"
DEFAULT_WINDOW_HOURS = 48
