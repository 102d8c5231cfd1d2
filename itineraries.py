"""
itineraries.py — Synchronous itinerary router

  POST /itineraries — cached or freshly generated itinerary for a trip request

Served from the shared itinerary cache when a fresh entry exists; otherwise
the request waits for enrichment and generation.  Upstream failures return
502 and nothing partial is cached.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from errors import UpstreamError
from pdf_jobs import client_address
from planner import VARIANT_BASIC, get_or_create_itinerary
from rate_limit import check_rate_limit
from schemas import ItineraryResponse, TripRequest
from services import Services, get_services

logger = logging.getLogger(__name__)

itineraries_router = APIRouter(prefix='/itineraries', tags=['itineraries'])


@itineraries_router.post('')
async def create_itinerary(
    body: TripRequest,
    request: Request,
    services: Services = Depends(get_services),
):
    client = client_address(request)
    allowed, retry_after = check_rate_limit(client, 'itineraries')
    if not allowed:
        logger.warning('Rate limit hit: client=%s /itineraries retry_after=%ds', client, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f'Too many requests. Please wait {retry_after} seconds before trying again.',
        )

    try:
        entry = await get_or_create_itinerary(body, services, variant=VARIANT_BASIC)
    except UpstreamError as exc:
        logger.error('Itinerary upstream failure for %s: %s', body.city_name, exc)
        raise HTTPException(status_code=502, detail=f'Itinerary generation failed: {exc}')
    except HTTPException:
        raise
    except Exception as exc:
        logger.error('Unhandled error in /itineraries: %s', exc, exc_info=True)
        raise HTTPException(status_code=500, detail='An unexpected error occurred. Please try again.')

    return ItineraryResponse(
        city       = entry.city,
        days       = entry.days,
        places     = entry.places,
        itinerary  = entry.itinerary,
        created_at = entry.created_at,
    ).dump()
