"""
Google Custom Search JSON API response models.
Only the fields used to build classifier context are declared.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SearchItem(BaseModel):
    title: str
    link: str
    snippet: Optional[str] = None
    html_snippet: Optional[str] = Field(default=None, alias="htmlSnippet")
    display_link: Optional[str] = Field(default=None, alias="displayLink")


class SearchResponse(BaseModel):
    items: Optional[list[SearchItem]] = None
