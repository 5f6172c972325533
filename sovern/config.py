import os
from dotenv import load_dotenv

load_dotenv()

# Empty means in-memory only
DATABASE_URL = os.getenv("DATABASE_URL", "")
DB_POOL_MIN = int(os.getenv("DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.getenv("DB_POOL_MAX", "5"))

ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

MODEL_FAST = os.getenv("MODEL_FAST", "claude-sonnet-4-5")
MODEL_SYNTHESIS = os.getenv("MODEL_SYNTHESIS", "claude-sonnet-4-5")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))
ANTHROPIC_VERSION = os.getenv("ANTHROPIC_VERSION", "2023-06-01")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Belief weight scale
WEIGHT_MIN = 1
WEIGHT_MAX = 10
WEIGHT_STEP = 1
REVISION_PENALTY = 2.0
MAJORITY_WEIGHT = 5

# Thresholds
OSCILLATION_WINDOW = int(os.getenv("OSCILLATION_WINDOW", "4"))
OSCILLATION_MIN_REVERSALS = int(os.getenv("OSCILLATION_MIN_REVERSALS", "3"))
TENSION_WINDOW_DAYS = float(os.getenv("TENSION_WINDOW_DAYS", "7"))
HEALTHY_COHERENCE = 70.0
CAUTION_COHERENCE = 50.0
CONSOLIDATED_COHERENCE = 60.0
