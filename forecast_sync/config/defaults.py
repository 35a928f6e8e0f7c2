"""Default provider endpoint, location and cache horizon."""

OWM_BASE_URL = "https://api.openweathermap.org"
DEFAULT_LOCATION_QUERY = "Mountain View, CA"
DEFAULT_FORECAST_DAYS = 14
DEFAULT_HORIZON_DAYS = 14
DEFAULT_DB_PATH = "data/forecast.db"
API_KEY_ENV_VAR = "OWM_API_KEY"
