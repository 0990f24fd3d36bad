"""
Builds the bounded analysis prompt for one page snapshot.

Every element category is capped so the request size stays predictable;
headings are sent in full because the outline is what the model needs to
judge heading structure.
"""
import json
from typing import List, Optional

from app.features.scan.models.scan import ComplianceLevel
from app.features.scan.schemas.snapshot import ElementDescriptor, PageSnapshot
from app.platform.config import settings

SYSTEM_PROMPT = (
    "You are an expert web accessibility auditor. Analyze websites for WCAG compliance "
    "and provide detailed, actionable feedback. Always respond with valid JSON only."
)

RESPONSE_SCHEMA = """{
  "score": number (0-100),
  "issues": [
    {
      "type": "string",
      "severity": "CRITICAL" | "WARNING" | "INFO",
      "description": "string",
      "element": "string",
      "recommendation": "string",
      "complianceReference": "string"
    }
  ],
  "insights": "string"
}"""

# (snapshot attribute, prompt label, capped)
SECTIONS = (
    ("images", "Images", True),
    ("links", "Links", True),
    ("buttons", "Buttons", True),
    ("forms", "Forms", True),
    ("inputs", "Form Inputs", True),
    ("headings", "Headings", False),
)


def _serialize(elements: List[ElementDescriptor]) -> str:
    return json.dumps([element.prompt_view() for element in elements], indent=2, ensure_ascii=False)


def build_prompt(snapshot: PageSnapshot, level: ComplianceLevel, element_limit: Optional[int] = None) -> str:
    limit = settings.PROMPT_ELEMENT_LIMIT if element_limit is None else element_limit
    wcag = level.wcag_level

    sections = []
    for attribute, label, capped in SECTIONS:
        elements = getattr(snapshot, attribute)
        shown = elements[:limit] if capped else elements
        sections.append(f"{label} ({len(elements)}):\n{_serialize(shown)}")

    body = "\n\n".join(sections)

    return f"""
Analyze this webpage for accessibility issues according to WCAG {wcag} standards:

Page Title: {snapshot.title}
URL: {snapshot.url}

{body}

Please provide:
1. An accessibility score (0-100)
2. A list of specific issues found
3. Overall insights and recommendations

Focus on:
- Missing alt text for images
- Missing ARIA labels
- Keyboard navigation issues
- Form accessibility
- Heading structure
- Link descriptions

Return your response as JSON in exactly this format:
{RESPONSE_SCHEMA}

Do not include any text before or after the JSON.
"""
