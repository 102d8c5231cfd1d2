"""
services.py — The collaborators a request or a background job needs.

Built once at startup (build_services) and stored on app.state; tests build
their own Services with an in-memory store and fake collaborators.
"""

from dataclasses import dataclass

import httpx
from fastapi import Request

from document_store import DocumentStore, build_document_store
from generator import ClaudeItineraryGenerator, ItineraryGenerator
from itinerary_cache import ItineraryCache
from jobs import JobStore
from place_cache import PlaceEnrichmentCache
from places import PlacesClient
from renderer import PdfRenderer
from storage import LocalObjectStore, ObjectStore


@dataclass
class Services:
    place_cache:     PlaceEnrichmentCache
    itinerary_cache: ItineraryCache
    job_store:       JobStore
    places:          PlacesClient
    generator:       ItineraryGenerator
    renderer:        PdfRenderer
    object_store:    ObjectStore

    @classmethod
    def from_store(cls, store: DocumentStore, *, places: PlacesClient,
                   generator: ItineraryGenerator, renderer: PdfRenderer,
                   object_store: ObjectStore) -> 'Services':
        return cls(
            place_cache     = PlaceEnrichmentCache(store),
            itinerary_cache = ItineraryCache(store),
            job_store       = JobStore(store),
            places          = places,
            generator       = generator,
            renderer        = renderer,
            object_store    = object_store,
        )


def build_services(http_client: httpx.AsyncClient) -> Services:
    """Production wiring from config.py settings."""
    return Services.from_store(
        build_document_store(),
        places       = PlacesClient(http_client),
        generator    = ClaudeItineraryGenerator(),
        renderer     = PdfRenderer(),
        object_store = LocalObjectStore(),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency: the Services instance attached at startup."""
    return request.app.state.services
