import os

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ALGORITHM_VERSION = "v2_interests_plus_soft_prefs"

RECOMPUTE_DEFAULT_BATCH = int(os.getenv("RECOMPUTE_DEFAULT_BATCH", "10"))
RECOMPUTE_DEFAULT_CANDIDATES = int(os.getenv("RECOMPUTE_DEFAULT_CANDIDATES", "200"))
RECOMPUTE_DEFAULT_TIMEOUT_MS = int(os.getenv("RECOMPUTE_DEFAULT_TIMEOUT_MS", "10000"))
RECOMPUTE_TOP_K = int(os.getenv("RECOMPUTE_TOP_K", "50"))

# 0 disables the cutoff / budget.
RECOMPUTE_MAX_ATTEMPTS = int(os.getenv("RECOMPUTE_MAX_ATTEMPTS", "5"))
RECOMPUTE_LOCK_TTL_SECONDS = int(os.getenv("RECOMPUTE_LOCK_TTL_SECONDS", "900"))
RECOMPUTE_RUN_BUDGET_MS = int(os.getenv("RECOMPUTE_RUN_BUDGET_MS", "60000"))

BATCH_BOUNDS = (1, 50)
CANDIDATE_BOUNDS = (20, 500)
TIMEOUT_BOUNDS_MS = (2000, 15000)

CORS_ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    if o.strip()
]
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}
