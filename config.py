# Runtime configuration, read from the environment.
import os

MARKETPLACE_API_URL = os.getenv("MARKETPLACE_API_URL", "http://localhost:3000")
MARKETPLACE_TIMEOUT = float(os.getenv("MARKETPLACE_TIMEOUT", "30"))

# first_match | best_value
DISCOUNT_POLICY = os.getenv("DISCOUNT_POLICY", "first_match")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))
