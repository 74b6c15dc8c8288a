from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Base URLs
WIKI_API_BASE = os.getenv("WIKI_API_BASE", "https://en.wikipedia.org/w/api.php")
WIKIDATA_API_BASE = os.getenv("WIKIDATA_API_BASE", "https://www.wikidata.org/w/api.php")

# Wikimedia APIs reject requests without a descriptive User-Agent
USER_AGENT: str = os.getenv(
    "WIKI_USER_AGENT",
    "AirportRoutes/1.0 (https://github.com/airport-routes; contact@airport-routes.dev)",
)

# Rate limiting / timeouts
WIKI_MAX_RPS: float = float(os.getenv("WIKI_MAX_RPS", "5"))
WIKI_BURST: int = int(os.getenv("WIKI_BURST", "5"))
WIKI_TIMEOUT: float = float(os.getenv("WIKI_TIMEOUT", "15"))

# Titles / ids per multi-value request; the APIs cap this at 50
MAX_BATCH_SIZE = 50
COORD_BATCH_SIZE: int = max(1, min(MAX_BATCH_SIZE, int(os.getenv("COORD_BATCH_SIZE", "50"))))

# Wikidata property "coordinate location"
COORDINATE_PROPERTY = "P625"
