"""
config.py — Environment-driven settings for the CityBreaker backend.

Every value is read once at import time from the process environment, after
loading the optional .env file that sits next to this module.  Nothing here
talks to the network; the modules that need a setting import the constant.
"""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), '.env'), override=True)

BASE_DIR = os.path.dirname(__file__)

# ── Generative model ──────────────────────────────────────────────────────────
ANTHROPIC_MODEL            = os.getenv('ANTHROPIC_MODEL', 'claude-haiku-4-5-20251001')
GENERATION_TIMEOUT_SECONDS = float(os.getenv('GENERATION_TIMEOUT_SECONDS', '10'))
GENERATION_MAX_RETRIES     = int(os.getenv('GENERATION_MAX_RETRIES', '3'))
GENERATION_MAX_TOKENS      = 8000

# ── Google Places ─────────────────────────────────────────────────────────────
GOOGLE_PLACES_API_KEY  = os.getenv('GOOGLE_PLACES_API_KEY', '')
PLACES_API_URL         = 'https://places.googleapis.com/v1/places:searchText'
PLACES_MEDIA_BASE_URL  = 'https://places.googleapis.com/v1'
PLACES_LOOKUP_TIMEOUT  = 5   # seconds
PHOTO_MAX_WIDTH_PX     = 1200

# ── Document store ────────────────────────────────────────────────────────────
DOCUMENT_STORE = os.getenv('DOCUMENT_STORE', 'sql').strip().lower()   # sql | redis | memory
DATABASE_URL   = os.getenv('DATABASE_URL', 'sqlite:///citybreaker.db')
REDIS_URL      = os.getenv('REDIS_URL', '').strip()

PLACE_COLLECTION     = 'placeEnrichment_v1'
ITINERARY_COLLECTION = 'itineraryCache_v2'
JOBS_COLLECTION      = 'pdfJobs'

# ── Freshness windows ─────────────────────────────────────────────────────────
PLACE_TTL     = timedelta(days=int(os.getenv('PLACE_TTL_DAYS', '180')))
ITINERARY_TTL = timedelta(days=int(os.getenv('ITINERARY_TTL_DAYS', '31')))

# ── Artifacts ─────────────────────────────────────────────────────────────────
ARTIFACT_DIR             = os.getenv('ARTIFACT_DIR', os.path.join(BASE_DIR, 'artifacts'))
ARTIFACT_URL_TTL_SECONDS = int(os.getenv('ARTIFACT_URL_TTL_SECONDS', str(24 * 3600)))
ARTIFACT_SIGNING_KEY     = os.getenv('ARTIFACT_SIGNING_KEY', 'dev-only-change-me')
PUBLIC_BASE_URL          = os.getenv('PUBLIC_BASE_URL', 'http://localhost:8000').rstrip('/')

# ── HTTP surface ──────────────────────────────────────────────────────────────
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
    if o.strip()
]
MAX_TRIP_DAYS   = int(os.getenv('MAX_TRIP_DAYS', '14'))
MAX_PLACES      = 60
MAX_PLACE_NAME  = 200
MAX_CITY_NAME   = 100

# ── Client polling ────────────────────────────────────────────────────────────
POLL_INTERVAL_SECONDS = float(os.getenv('POLL_INTERVAL_SECONDS', '3'))
