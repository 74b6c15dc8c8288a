# config.py
import os
from dotenv import load_dotenv
load_dotenv()

import logging
from logging_utils import configure_logging

configure_logging()
logger = logging.getLogger("airportroutes.config")

# Section the destinations table lives under, and its fallback anchor id
DESTINATIONS_HEADING = os.getenv("DESTINATIONS_HEADING", "Airlines and destinations")
DESTINATIONS_ANCHOR = os.getenv("DESTINATIONS_ANCHOR", "Airlines_and_destinations")

# Heading ranks scanned when locating the section
SECTION_HEADING_TAGS = ["h2", "h3", "h4"]

# Class that marks a data table
DATA_TABLE_CLASS = "wikitable"

API_VERSION = "1.0.0"

logger.info(
    f"Config: heading={DESTINATIONS_HEADING!r}, anchor={DESTINATIONS_ANCHOR!r}"
)
