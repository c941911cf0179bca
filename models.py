from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class SearchCriteria(BaseModel):
    budget: Optional[str] = None
    location: Optional[str] = None
    bedrooms: Optional[str] = None
    bathrooms: Optional[str] = None
    minSize: Optional[str] = None
    maxSize: Optional[str] = None
    amenities: Optional[str] = None


class ExtractedFilters(SearchCriteria):
    intent: Optional[str] = None


class PreferencesRequest(BaseModel):
    userId: Optional[str] = None
    savedProperties: Optional[List[str]] = None
    preferences: Optional[Dict[str, Any]] = None
    searchHistory: Optional[Dict[str, Any]] = None


class SavePropertyRequest(BaseModel):
    propertyId: str


class ExtractRequest(BaseModel):
    message: Optional[str] = None
    conversationHistory: List[Dict[str, Any]] = []


class ChatRequest(BaseModel):
    message: Optional[str] = None
    context: Dict[str, Any] = {}
