from renderer import COLOR_PALETTES, PdfRenderer, get_color_palette
from schemas import (
    AssembledActivity,
    CacheMeta,
    CityGuide,
    ItineraryCacheEntry,
    ItineraryDay,
)


def _entry(guide=None):
    return ItineraryCacheEntry(
        city='paris',
        days=2,
        itinerary=[
            ItineraryDay(title='Icons & <views>', activities=[
                AssembledActivity(title='Climb', place_name='Eiffel Tower', why_visit='Views',
                                  website='https://example.com/?a=1&b=2'),
            ]),
            ItineraryDay(title='Art', activities=[
                AssembledActivity(title='Louvre', place_name='Louvre', price_range='$$'),
            ]),
        ],
        guide=guide,
        meta=CacheMeta(variant='pro'),
    )


def test_renders_pdf_bytes():
    pdf = PdfRenderer().render(_entry(), 'Paris')
    assert pdf.startswith(b'%PDF')
    assert len(pdf) > 1000


def test_renders_guide_sections():
    guide = CityGuide(tagline='City of light', intro='Bonjour.',
                      neighbourhoods=['Montmartre'], tips=['Buy a carnet'])
    with_guide = PdfRenderer().render(_entry(guide), 'Paris')
    assert with_guide.startswith(b'%PDF')


def test_city_name_defaults_from_key():
    assert PdfRenderer().render(_entry()).startswith(b'%PDF')


def test_palette_lookup():
    assert get_color_palette('Paris, France') == COLOR_PALETTES['paris']
    assert get_color_palette('Atlantis') == COLOR_PALETTES['default']
