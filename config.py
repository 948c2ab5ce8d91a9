"""Application configuration driven by environment variables.

All settings have sensible defaults for local development.  Components read
these values as constructor defaults, so tests can override them directly.
"""

import os

# ---------------------------------------------------------------------------
# Hybrid blending
# ---------------------------------------------------------------------------

# Linear weights for the three scoring models.  Normalised by their sum at
# blend time, so they need not add up to 1.
BLEND_WEIGHT_COLLABORATIVE: float = float(os.getenv("BLEND_WEIGHT_COLLABORATIVE", "0.4"))
BLEND_WEIGHT_CONTENT: float = float(os.getenv("BLEND_WEIGHT_CONTENT", "0.4"))
BLEND_WEIGHT_DEMOGRAPHIC: float = float(os.getenv("BLEND_WEIGHT_DEMOGRAPHIC", "0.2"))

# Share of the final base score taken by the cold-start sub-score for users
# still in the early-interaction state.
COLD_START_BLEND_WEIGHT: float = float(os.getenv("COLD_START_BLEND_WEIGHT", "0.4"))

# Freshness: score *= exp(-TIME_DECAY_LAMBDA * age_hours)
TIME_DECAY_LAMBDA: float = float(os.getenv("TIME_DECAY_LAMBDA", "0.1"))

# Diversity: penalty = min(same_category_count * STEP, CAP)
DIVERSITY_PENALTY_STEP: float = float(os.getenv("DIVERSITY_PENALTY_STEP", "0.05"))
DIVERSITY_PENALTY_CAP: float = float(os.getenv("DIVERSITY_PENALTY_CAP", "0.3"))

# ---------------------------------------------------------------------------
# Cold start
# ---------------------------------------------------------------------------

# Meaningful interactions needed before a user is treated as warm.
WARM_INTERACTION_THRESHOLD: int = int(os.getenv("WARM_INTERACTION_THRESHOLD", "10"))

COLD_START_POPULARITY_WEIGHT: float = 0.4
COLD_START_DEMOGRAPHIC_WEIGHT: float = 0.35
COLD_START_TRENDING_WEIGHT: float = 0.15
COLD_START_DIVERSITY_WEIGHT: float = 0.1

COLD_START_CONFIDENCE_CAP: float = 0.3
EARLY_CONFIDENCE_CAP: float = 0.8
EARLY_LEARNING_RATE: float = float(os.getenv("EARLY_LEARNING_RATE", "0.3"))
ADAPTED_PROFILE_CONFIDENCE: float = 0.4
INTEREST_BOOST: float = 1.2

# ---------------------------------------------------------------------------
# Behavioural learning
# ---------------------------------------------------------------------------

EMA_LEARNING_RATE: float = float(os.getenv("EMA_LEARNING_RATE", "0.1"))
DRIFT_THRESHOLD: float = float(os.getenv("DRIFT_THRESHOLD", "0.3"))
INTERACTION_HALF_LIFE_DAYS: float = float(os.getenv("INTERACTION_HALF_LIFE_DAYS", "30"))
SESSION_GAP_MINUTES: int = int(os.getenv("SESSION_GAP_MINUTES", "30"))
MIN_PREDICTION_SAMPLES: int = 5

# Weight assumed for a category the user has never interacted with.
DEFAULT_CATEGORY_WEIGHT: float = 0.1
# Starting point of the moving average for a category seen for the first time.
UNSEEN_CATEGORY_PRIOR: float = 0.3

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

# One shared reason-generation deadline per request; items scoring below the
# threshold are not enriched.
ENRICHMENT_TIMEOUT_SECONDS: float = float(os.getenv("ENRICHMENT_TIMEOUT_SECONDS", "2.0"))
ENRICHMENT_SCORE_THRESHOLD: float = float(os.getenv("ENRICHMENT_SCORE_THRESHOLD", "0.6"))

# Thread pool used for per-article scoring.
SCORING_MAX_WORKERS: int = int(os.getenv("SCORING_MAX_WORKERS", "8"))

INTERACTION_RETENTION_DAYS: int = int(os.getenv("INTERACTION_RETENTION_DAYS", "365"))
DEFAULT_INTERACTION_WINDOW: int = int(os.getenv("DEFAULT_INTERACTION_WINDOW", "200"))
MAX_INTERACTION_HISTORY: int = 1000
