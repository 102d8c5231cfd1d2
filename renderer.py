"""
renderer.py — Branded PDF guide built with reportlab.

Layout: a cover banner in the city's palette with the guide tagline and
intro, then one section per day (title, activities with their practical
details and links), then neighbourhoods and tips when the guide has them.

render() is synchronous and CPU-bound; the orchestrator runs it in the
thread pool.
"""

import io
import logging
from html import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    HRFlowable,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from errors import RenderError
from schemas import ItineraryCacheEntry

logger = logging.getLogger(__name__)

COLOR_PALETTES = {
    'barcelona': {'primary': '#c41e3a', 'accent': '#f4a261', 'secondary': '#2a9d8f', 'neutral': '#f5e6d3'},
    'paris':     {'primary': '#1a1a2e', 'accent': '#d4a574', 'secondary': '#16213e', 'neutral': '#f0e6d2'},
    'tokyo':     {'primary': '#8B0000', 'accent': '#FFD700', 'secondary': '#1a1a1a', 'neutral': '#f5f5f5'},
    'london':    {'primary': '#0b3d91', 'accent': '#c8102e', 'secondary': '#1d1d1b', 'neutral': '#f2f2f2'},
    'default':   {'primary': '#2c3e50', 'accent': '#e67e22', 'secondary': '#34495e', 'neutral': '#ecf0f1'},
}


def get_color_palette(city: str) -> dict:
    key = (city or '').lower().split(',')[0].strip()
    return COLOR_PALETTES.get(key, COLOR_PALETTES['default'])


def _e(value, fallback=''):
    return escape(str(value)) if value else fallback


def _styles(palette: dict) -> dict:
    base = getSampleStyleSheet()
    return {
        'title': ParagraphStyle(
            name='GuideTitle', parent=base['Title'], fontSize=30,
            textColor=colors.white, alignment=1, spaceAfter=6,
        ),
        'tagline': ParagraphStyle(
            name='GuideTagline', parent=base['BodyText'], fontSize=13,
            textColor=colors.white, alignment=1,
        ),
        'day': ParagraphStyle(
            name='DayHeader', parent=base['Heading2'], fontSize=18,
            textColor=colors.HexColor(palette['primary']), spaceAfter=8,
        ),
        'activity': ParagraphStyle(
            name='ActivityTitle', parent=base['Heading3'], fontSize=13,
            textColor=colors.HexColor(palette['secondary']), spaceAfter=2,
        ),
        'label': ParagraphStyle(
            name='Label', parent=base['BodyText'], fontSize=9,
            textColor=colors.HexColor(palette['accent']),
        ),
        'body': base['BodyText'],
        'section': ParagraphStyle(
            name='Section', parent=base['Heading2'],
            textColor=colors.HexColor(palette['primary']),
        ),
    }


def _cover(entry: ItineraryCacheEntry, city_name: str, styles: dict, palette: dict) -> list:
    title   = f'{city_name} in {entry.days} day{"s" if entry.days != 1 else ""}'
    tagline = entry.guide.tagline if entry.guide else 'Your CityBreaker itinerary'
    banner = Table(
        [[Paragraph(_e(title), styles['title'])], [Paragraph(_e(tagline), styles['tagline'])]],
        colWidths=[6.8 * inch],
    )
    banner.setStyle(TableStyle([
        ('BACKGROUND',    (0, 0), (-1, -1), colors.HexColor(palette['primary'])),
        ('ALIGN',         (0, 0), (-1, -1), 'CENTER'),
        ('TOPPADDING',    (0, 0), (-1, -1), 18),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 18),
    ]))
    elements = [banner, Spacer(1, 18)]
    if entry.guide and entry.guide.intro:
        elements.append(Paragraph(_e(entry.guide.intro), styles['body']))
        elements.append(Spacer(1, 12))
    return elements


def _day(index: int, day, styles: dict, palette: dict) -> list:
    elements = [Paragraph(f'Day {index}: {_e(day.title)}', styles['day'])]
    for act in day.activities:
        elements.append(Paragraph(_e(act.title), styles['activity']))
        elements.append(Paragraph(_e(act.place_name), styles['label']))
        if act.description:
            elements.append(Paragraph(_e(act.description), styles['body']))
        details = [
            (label, value) for label, value in (
                ('Why visit', act.why_visit),
                ('Insider tip', act.insider_tip),
                ('Price', act.price_range),
                ('Best for', act.audience),
            ) if value
        ]
        for label, value in details:
            elements.append(Paragraph(f'<b>{label}:</b> {_e(value)}', styles['body']))
        links = [
            f'<link href="{_e(url)}">{label}</link>'
            for label, url in (('Website', act.website), ('Map', act.google_maps_url)) if url
        ]
        if links:
            elements.append(Paragraph(' · '.join(links), styles['label']))
        elements.append(Spacer(1, 8))
    elements.append(HRFlowable(width='100%', color=colors.HexColor(palette['neutral'])))
    return elements


def _guide_sections(entry: ItineraryCacheEntry, styles: dict) -> list:
    guide = entry.guide
    if guide is None or not (guide.neighbourhoods or guide.tips):
        return []
    elements = [PageBreak()]
    for heading, items in (('Neighbourhoods', guide.neighbourhoods), ('Tips', guide.tips)):
        if not items:
            continue
        elements.append(Paragraph(heading, styles['section']))
        for item in items:
            elements.append(Paragraph(f'• {_e(item)}', styles['body']))
        elements.append(Spacer(1, 10))
    return elements


class PdfRenderer:
    def render(self, entry: ItineraryCacheEntry, city_name: str | None = None) -> bytes:
        city_name = city_name or entry.city.replace('-', ' ').title()
        palette   = get_color_palette(city_name)
        styles    = _styles(palette)

        elements = _cover(entry, city_name, styles, palette)
        for index, day in enumerate(entry.itinerary, start=1):
            if index > 1:
                elements.append(PageBreak())
            elements.extend(_day(index, day, styles, palette))
        elements.extend(_guide_sections(entry, styles))

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=f'{city_name} | CityBreaker')
        try:
            doc.build(elements)
        except Exception as exc:
            raise RenderError(f'PDF rendering failed: {exc}') from exc

        pdf = buffer.getvalue()
        logger.info('Rendered PDF for %s: %d day(s), %d bytes', city_name, len(entry.itinerary), len(pdf))
        return pdf
