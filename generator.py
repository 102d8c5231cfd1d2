"""
generator.py — Itinerary and city-guide generation with Claude.

The model is asked for a single JSON object.  Its answer is parsed into the
strict schemas in schemas.py; anything that does not fit raises
ItineraryParseError rather than being passed along.

Each attempt is bounded by GENERATION_TIMEOUT_SECONDS and the whole call is
retried up to GENERATION_MAX_RETRIES times.  Callers see either a parsed
result or a GenerationError.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass

from anthropic import APIError, AsyncAnthropic
from pydantic import BaseModel, ValidationError

from config import (
    ANTHROPIC_MODEL,
    GENERATION_MAX_RETRIES,
    GENERATION_MAX_TOKENS,
    GENERATION_TIMEOUT_SECONDS,
)
from errors import GenerationError, ItineraryParseError
from schemas import CityGuide, EnrichedPlace, GeneratedItinerary

logger = logging.getLogger(__name__)

ITINERARY_SYSTEM_PROMPT = """You are a travel concierge writing practical city itineraries.
Reply with ONE valid JSON object and nothing else — no markdown, no commentary.

Schema:
{
  "itinerary": [
    {
      "title": "[Short theme for the day]",
      "dayPhotoSuggestion": "[Exactly one of the listed place names]",
      "activities": [
        {
          "title": "[Activity title]",
          "description": "[2 sentences: what it is and what to do there]",
          "whyVisit": "[1 sentence]",
          "insiderTip": "[1 practical tip]",
          "priceRange": "[Free / $ / $$ / $$$]",
          "audience": "[Who will enjoy it most]",
          "placeName": "[Exactly one of the listed place names]"
        }
      ]
    }
  ]
}

Rules:
- Write like a knowledgeable local. Lead with the useful fact.
- Every activity must reference one of the listed places by its exact name.
- Produce exactly the requested number of days, in order."""

GUIDE_SYSTEM_PROMPT = """You are a travel writer producing the front matter of a printed city guide.
Reply with ONE valid JSON object and nothing else — no markdown, no commentary.

Schema:
{
  "guide": {
    "tagline": "[One line, under 12 words]",
    "intro": "[One paragraph introducing the city to a first-time visitor]",
    "coverPhotoSuggestion": "[Exactly one of the listed place names]",
    "neighbourhoods": ["[Neighbourhood — one sentence on why to go]"],
    "tips": ["[Practical tip]"]
  }
}"""


@dataclass
class GeneratedContent:
    itinerary: GeneratedItinerary
    prompt:    str
    raw_text:  str
    model:     str


def extract_json(text: str) -> str | None:
    """
    Pull the JSON object out of a model reply: a ```json fenced block if it
    parses, otherwise the span from the first '{' to the last '}'.
    """
    fenced = re.search(r'```(?:json)?\s*([\s\S]*?)```', text or '', re.IGNORECASE)
    candidates = [fenced.group(1)] if fenced else []
    first, last = (text or '').find('{'), (text or '').rfind('}')
    if first != -1 and last > first:
        candidates.append(text[first:last + 1])
    for candidate in candidates:
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            continue
    return None


def _parse(raw_text: str, model_cls: type[BaseModel], root_key: str):
    payload = extract_json(raw_text)
    if payload is None:
        raise ItineraryParseError('Model returned no JSON object', raw_text=raw_text)
    data = json.loads(payload)
    if not isinstance(data, dict) or root_key not in data:
        raise ItineraryParseError(f'Model JSON is missing "{root_key}"', raw_text=raw_text)
    try:
        return model_cls.model_validate(data if root_key == 'itinerary' else data[root_key])
    except ValidationError as exc:
        raise ItineraryParseError(
            f'Model JSON does not match the {root_key} schema ({exc.error_count()} error(s))',
            raw_text=raw_text,
        ) from exc


def parse_itinerary(raw_text: str) -> GeneratedItinerary:
    return _parse(raw_text, GeneratedItinerary, 'itinerary')


def parse_guide(raw_text: str) -> CityGuide:
    return _parse(raw_text, CityGuide, 'guide')


def build_itinerary_prompt(places: list[EnrichedPlace], days: int, city: str) -> str:
    place_list = ', '.join(f'"{p.name}"' for p in places)
    return (
        f'Plan a {days}-day trip to {city}.\n'
        f'Use ONLY these places: [{place_list}].\n'
        f'Return {days} day objects in the "itinerary" array.'
    )


def build_guide_prompt(places: list[EnrichedPlace], city: str) -> str:
    place_list = ', '.join(f'"{p.name}"' for p in places)
    return f'Write the city guide for {city}. Places on this trip: [{place_list}].'


class ItineraryGenerator:
    """Interface for the generative collaborator."""

    model = 'unknown'

    async def generate_itinerary(self, places: list[EnrichedPlace], days: int,
                                 city: str) -> GeneratedContent:
        raise NotImplementedError

    async def generate_guide(self, city: str, places: list[EnrichedPlace]) -> CityGuide:
        raise NotImplementedError


class ClaudeItineraryGenerator(ItineraryGenerator):
    def __init__(self, client: AsyncAnthropic | None = None,
                 model: str = ANTHROPIC_MODEL,
                 timeout: float = GENERATION_TIMEOUT_SECONDS,
                 max_attempts: int = GENERATION_MAX_RETRIES):
        # retried in _with_retries
        self._client      = client or AsyncAnthropic(max_retries=0)
        self.model        = model
        self.timeout      = timeout
        self.max_attempts = max(1, max_attempts)

    async def _complete(self, system: str, prompt: str) -> str:
        message = await asyncio.wait_for(
            self._client.messages.create(
                model=self.model,
                max_tokens=GENERATION_MAX_TOKENS,
                system=system,
                messages=[{'role': 'user', 'content': prompt}],
            ),
            timeout=self.timeout,
        )
        for block in message.content:
            block_text = getattr(block, 'text', None)
            if block_text:
                return str(block_text).strip()
        return ''

    async def _with_retries(self, label: str, system: str, prompt: str, parse):
        last_exc: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw_text = await self._complete(system, prompt)
                return raw_text, parse(raw_text)
            except asyncio.TimeoutError:
                last_exc = GenerationError(f'{label} generation timed out after {self.timeout:g}s')
            except APIError as exc:
                last_exc = GenerationError(f'{label} generation failed: {exc}')
            except ItineraryParseError as exc:
                last_exc = exc
            logger.warning('%s generation attempt %d/%d failed: %s',
                           label, attempt, self.max_attempts, last_exc)
        raise last_exc

    async def generate_itinerary(self, places, days, city):
        prompt = build_itinerary_prompt(places, days, city)
        raw_text, itinerary = await self._with_retries(
            'Itinerary', ITINERARY_SYSTEM_PROMPT, prompt, parse_itinerary,
        )
        logger.info('Itinerary generated for %s (%d days, %d places)', city, days, len(places))
        return GeneratedContent(itinerary=itinerary, prompt=prompt, raw_text=raw_text,
                                model=self.model)

    async def generate_guide(self, city, places):
        _, guide = await self._with_retries(
            'Guide', GUIDE_SYSTEM_PROMPT, build_guide_prompt(places, city), parse_guide,
        )
        logger.info('City guide generated for %s', city)
        return guide
