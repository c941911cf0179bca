# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# MongoDB
MONGO_URI = os.environ.get("MONGO_URI", "mongodb://localhost:27017/")
MONGO_DB_NAME = os.environ.get("MONGO_DATABASE", "real_estate")
PROPERTIES_COLLECTION = "properties"
PREFERENCES_COLLECTION = "userpreferences"

# "mongo" or "memory" (demo mode without a database)
STORE_BACKEND = os.environ.get("STORE_BACKEND", "mongo").lower()
SEED_FILE = os.environ.get("SEED_FILE")

# OpenAI
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

# Maximum number of listings returned by a single search
RESULT_LIMIT = int(os.environ.get("RESULT_LIMIT", "50"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", "5000"))
