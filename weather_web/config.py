import os

DB_URI = os.getenv("DATABASE_URI", "sqlite+aiosqlite:///./weather.db")

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Upper bounds for the `hours` query window. Bulk queries over every sender
# get the tighter one.
MAX_HOURS_STANDARD = int(os.getenv("MAX_HOURS_STANDARD", "720"))
MAX_HOURS_VISUALIZATION = int(os.getenv("MAX_HOURS_VISUALIZATION", "168"))
