import os
from dotenv import load_dotenv

# Load environment variables from a .env file if present
load_dotenv()

DEFAULT_DATA_FILE = "./data/quizzes.json"
DEFAULT_DEVICE_DIR = "./data/device"

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")


# PUBLIC_INTERFACE
def quiz_data_file() -> str:
    """Path of the quiz record JSON file (QUIZ_DATA_FILE, read at call time)."""
    return os.getenv("QUIZ_DATA_FILE") or DEFAULT_DATA_FILE


# PUBLIC_INTERFACE
def device_data_dir() -> str:
    """Directory holding the device-local review/history/settings blobs."""
    return os.getenv("DEVICE_DATA_DIR") or DEFAULT_DEVICE_DIR
