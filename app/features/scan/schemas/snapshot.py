"""
Page snapshot schemas.

A snapshot is the transient, structured extraction of one page's
accessibility-relevant elements. It is never persisted.
"""
from typing import Dict, List

from pydantic import BaseModel, Field


class ElementDescriptor(BaseModel):
    """One matched DOM element."""
    tag_name: str = Field(alias="tagName")
    attributes: Dict[str, str] = Field(default_factory=dict)
    text_content: str = Field(default="", alias="textContent")
    inner_html: str = Field(default="", alias="innerHTML")

    model_config = {"populate_by_name": True}

    def prompt_view(self) -> dict:
        """Shape used when serializing the element into an LLM prompt."""
        return self.model_dump(by_alias=True)


class PageSnapshot(BaseModel):
    title: str = ""
    url: str
    images: List[ElementDescriptor] = Field(default_factory=list)
    links: List[ElementDescriptor] = Field(default_factory=list)
    buttons: List[ElementDescriptor] = Field(default_factory=list)
    forms: List[ElementDescriptor] = Field(default_factory=list)
    headings: List[ElementDescriptor] = Field(default_factory=list)
    inputs: List[ElementDescriptor] = Field(default_factory=list)

    @property
    def element_count(self) -> int:
        return sum(
            len(group)
            for group in (self.images, self.links, self.buttons, self.forms, self.headings, self.inputs)
        )
