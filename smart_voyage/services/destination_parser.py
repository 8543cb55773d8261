"""
Surprise Destination Parser.
Splits the recommendation text into destination cards.

The recommendation service is expected to answer with numbered markdown
headings ("## 1. Goa"). Nothing enforces that format upstream, so text
without such headings simply yields no cards.
"""
import re

from ..models.recommendation import SurpriseDestination

HEADING_PATTERN = re.compile(r"##\s*\d+\.\s*")
MAX_DESTINATIONS = 3


def parse_destinations(text: str) -> list[SurpriseDestination]:
    """
    Extract up to three destinations from recommendation text.

    Each section's first line is the destination name; the remaining
    lines form its description. Text before the first heading is ignored.
    """
    if not text:
        return []

    sections = HEADING_PATTERN.split(text)
    destinations = []
    for section in sections[1:MAX_DESTINATIONS + 1]:
        lines = section.split("\n")
        destinations.append(SurpriseDestination(
            name=lines[0].strip(),
            description="\n".join(lines[1:]).strip()
        ))
    return destinations
