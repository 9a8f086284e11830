"""Configuration management for Relay Chat."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Completion endpoint
API_BASE_URL = os.getenv("CHAT_API_BASE_URL", "https://openrouter.ai/api/v1")
DEFAULT_MODEL = os.getenv("CHAT_DEFAULT_MODEL", "openai/gpt-3.5-turbo")
APP_TITLE = os.getenv("CHAT_APP_TITLE", "Relay Chat")
HTTP_REFERER = os.getenv("CHAT_HTTP_REFERER", "http://localhost:8000")
REQUEST_TIMEOUT = float(os.getenv("CHAT_REQUEST_TIMEOUT", "120"))

# Generation parameters
TEMPERATURE = 0.7
MAX_TOKENS = 2000

# Conversation limits
MAX_HISTORY_ITEMS = int(os.getenv("CHAT_MAX_HISTORY_ITEMS", "50"))
MAX_MESSAGE_LENGTH = 4000

# Persistence
STORAGE_BACKEND = os.getenv("CHAT_STORAGE_BACKEND", "file")  # file, memory or supabase
STORAGE_PATH = os.getenv("CHAT_STORAGE_PATH", os.path.expanduser("~/.relay_chat/storage.json"))
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_KV_TABLE = os.getenv("SUPABASE_KV_TABLE", "kv_store")

# Storage keys (kept compatible with the browser client's localStorage)
STORAGE_KEYS = {
    "API_KEY": "grok_api_key",
    "MODEL": "grok_model",
    "CUSTOM_MODEL": "grok_custom_model",
    "CHAT_HISTORY": "grok_chat_history",
}

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # text or json

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:8000"
).split(",")

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
