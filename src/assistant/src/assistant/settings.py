import os
from dotenv import load_dotenv
from loguru import logger


DOTENV_PATH = os.getenv("DOTENV_PATH", ".env")
if os.path.exists(DOTENV_PATH):
    load_dotenv(dotenv_path=DOTENV_PATH)
else:
    logger.debug(f"No .env file found at {DOTENV_PATH}, using defaults/environment variables")


CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")

# Polling settings
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "60"))
BLOCK_WINDOW = int(os.getenv("BLOCK_WINDOW", "256"))  # latest block + 255 preceding ones
BLOCK_FETCH_BATCH_SIZE = int(os.getenv("BLOCK_FETCH_BATCH_SIZE", "10"))
POLL_RETRY_BASE_DELAY = float(os.getenv("POLL_RETRY_BASE_DELAY", "1"))
POLL_RETRY_MAX_DELAY = float(os.getenv("POLL_RETRY_MAX_DELAY", "30"))

# Scheduler settings
SCHEDULER_INTERVAL = float(os.getenv("SCHEDULER_INTERVAL", "10"))

# Health settings
LAUNCH_HEALTH = os.getenv("LAUNCH_HEALTH") == "True"
ASSISTANT_HEALTH_HOST = os.getenv("ASSISTANT_HEALTH_HOST", "0.0.0.0")
ASSISTANT_HEALTH_PORT = int(os.getenv("ASSISTANT_HEALTH_PORT", 9000))
ASSISTANT_HEALTH_ENDPOINT = os.getenv("ASSISTANT_HEALTH_ENDPOINT", "/health")
ASSISTANT_METRICS_ENDPOINT = os.getenv("ASSISTANT_METRICS_ENDPOINT", "/metrics")
