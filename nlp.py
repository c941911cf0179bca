# nlp.py
import json
import logging
import re
from typing import Any, Dict, List, Optional

import openai

from config import OPENAI_API_KEY, OPENAI_MODEL

openai.api_key = OPENAI_API_KEY

logger = logging.getLogger(__name__)

FILTER_KEYS = ("budget", "location", "bedrooms", "bathrooms", "minSize", "maxSize", "amenities")
HISTORY_LIMIT = 10

EXTRACT_SYSTEM_PROMPT = (
    "You help users search for real estate. Read the conversation and extract the "
    "search filters from the user's latest message. Use earlier messages only to "
    "resolve references such as 'the same area' or 'one more bedroom'."
)

CHAT_SYSTEM_PROMPT = (
    "You are AgentMeera, a friendly real estate assistant. Reply in one or two short "
    "sentences. Never invent listings; only describe what the search context says."
)


class NLPServiceError(RuntimeError):
    """Raised when the language model cannot be reached or returns something unusable."""


def _get_openai_function_schema():
    """Function schema used to pull search filters out of a message."""
    return {
        "name": "extract_search_filters",
        "description": (
            "Extracts property search filters from the user's message. "
            "Always return every key; use null for anything the user did not mention."
        ),
        "parameters": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "budget": {
                    "type": ["integer", "null"],
                    "description": "Maximum price in dollars, e.g. 500000 for '500k'. Null if not given."
                },
                "location": {
                    "type": ["string", "null"],
                    "description": "City, neighbourhood or area, e.g. 'Austin'. Null if not given."
                },
                "bedrooms": {
                    "type": ["integer", "null"],
                    "description": "Minimum number of bedrooms, e.g. 3. Null if not given."
                },
                "bathrooms": {
                    "type": ["integer", "null"],
                    "description": "Minimum number of bathrooms, e.g. 2. Null if not given."
                },
                "minSize": {
                    "type": ["integer", "null"],
                    "description": "Minimum size in square feet. Null if not given."
                },
                "maxSize": {
                    "type": ["integer", "null"],
                    "description": "Maximum size in square feet. Null if not given."
                },
                "amenities": {
                    "type": ["array", "null"],
                    "items": {"type": "string"},
                    "description": "Requested amenities in lowercase, e.g. ['pool', 'gym']. Null if none."
                },
                "intent": {
                    "type": "string",
                    "enum": ["search", "general"],
                    "description": "'search' if the user is looking for properties, otherwise 'general'."
                }
            },
            "required": ["intent"]
        }
    }


def _complete(**kwargs):
    return openai.chat.completions.create(model=OPENAI_MODEL, **kwargs)


def _history_messages(conversation_history: Optional[List[Dict[str, Any]]]) -> List[Dict[str, str]]:
    """
    Converts chat history into OpenAI messages.

    Accepts both the widget's {"type": "user"|"bot", "text": ...} entries and
    plain {"role": ..., "content": ...} messages. Only the last HISTORY_LIMIT
    entries are kept.
    """
    messages = []
    for entry in (conversation_history or [])[-HISTORY_LIMIT:]:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role") or ("assistant" if entry.get("type") == "bot" else "user")
        content = entry.get("content") or entry.get("text")
        if role in ("user", "assistant") and isinstance(content, str) and content:
            messages.append({"role": role, "content": content})
    return messages


def _normalise_filter_value(key: str, value: Any) -> Optional[str]:
    # Filters are handed to the search endpoint as query strings
    if value is None or isinstance(value, bool):
        return None
    if key == "amenities" and isinstance(value, list):
        value = ", ".join(str(item).strip() for item in value if str(item).strip())
    elif isinstance(value, float):
        value = int(value)
    text = str(value).strip()
    return text or None


def extract_filters_from_text(message: str, conversation_history: Optional[List[Dict[str, Any]]] = None) -> dict:
    """
    Extracts search filters from a natural-language message.

    Args:
        message (str): The user's latest message
        conversation_history (list, optional): Earlier chat messages

    Returns:
        dict: Every key of FILTER_KEYS (string or None) plus "intent"

    Raises:
        NLPServiceError: If the model call fails or returns no usable filters
    """
    messages = [
        {"role": "system", "content": EXTRACT_SYSTEM_PROMPT},
        *_history_messages(conversation_history),
        {"role": "user", "content": message},
    ]
    try:
        completion = _complete(
            messages=messages,
            functions=[_get_openai_function_schema()],
            function_call={"name": "extract_search_filters"},
            temperature=0,
        )
    except openai.OpenAIError as ex:
        logger.error(f"Filter extraction request failed: {ex}")
        raise NLPServiceError(f"Filter extraction failed: {ex}") from ex

    reply = completion.choices[0].message
    if not reply.function_call:
        raise NLPServiceError("OpenAI did not return a function call")

    try:
        args_dict = json.loads(reply.function_call.arguments)
    except json.JSONDecodeError as ex:
        raise NLPServiceError("Could not decode function_call.arguments") from ex

    filters = {key: _normalise_filter_value(key, args_dict.get(key)) for key in FILTER_KEYS}
    filters["intent"] = args_dict.get("intent") or "general"
    logger.debug(f"Extracted filters: {filters}")
    return filters


def generate_chat_response(message: str, context: Optional[Dict[str, Any]] = None) -> str:
    """Returns a short conversational reply, given the search context (e.g. propertiesFound)."""
    system = CHAT_SYSTEM_PROMPT
    if context:
        system += f"\nSearch context: {json.dumps(context, default=str)}"
    try:
        completion = _complete(
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": message},
            ],
            temperature=0.7,
            max_tokens=150,
        )
    except openai.OpenAIError as ex:
        logger.error(f"Chat response request failed: {ex}")
        raise NLPServiceError(f"Chat response failed: {ex}") from ex

    content = completion.choices[0].message.content
    if not content or not content.strip():
        raise NLPServiceError("OpenAI returned an empty reply")
    return content.strip()


# Keyword fallback --------------------------------------------------------

_BEDROOMS = re.compile(r"(\d+)\s*(?:-\s*)?(?:bedrooms?|beds?|br)\b")
_BATHROOMS = re.compile(r"(\d+)\s*(?:-\s*)?(?:bathrooms?|baths?|ba)\b")
_BUDGET_PATTERNS = (
    re.compile(
        r"(?:under|below|less than|max(?:imum)?|up to|budget(?: of)?|price|cost)\s*(?:of\s*)?"
        r"\$?\s*(\d[\d,]*(?:\.\d+)?)\s*(k|m|million)?\b"
    ),
    re.compile(r"\$\s*(\d[\d,]*(?:\.\d+)?)\s*(k|m|million)?\b"),
)
_LOCATION = re.compile(
    r"\b(?:in|at|near|around)\s+(?!(?:a|an|the|my)\b)([a-z][a-z'.-]*(?:\s+[a-z][a-z'.-]*)?)"
)
_LOCATION_STOP_WORDS = {"under", "below", "with", "for", "and", "max", "up", "budget", "less", "around", "near"}
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "million": 1_000_000}


def _parse_budget(text: str) -> Optional[int]:
    for pattern in _BUDGET_PATTERNS:
        for match in pattern.finditer(text):
            number, suffix = match.group(1), match.group(2)
            whole = number.split(".")[0].replace(",", "")
            # "max 4 bedrooms" is not a price
            if not ("$" in match.group(0) or suffix or len(whole) >= 4):
                continue
            amount = float(number.replace(",", ""))
            return int(round(amount * _MULTIPLIERS.get(suffix, 1)))
    return None


def extract_filters_fallback(message: str) -> dict:
    """
    Keyword-based filter extraction used when the language model is unavailable.

    Only bedrooms, bathrooms, budget and location are recognised.
    """
    lower = (message or "").lower()
    filters: Dict[str, Optional[str]] = {key: None for key in FILTER_KEYS}

    match = _BEDROOMS.search(lower)
    if match:
        filters["bedrooms"] = match.group(1)

    match = _BATHROOMS.search(lower)
    if match:
        filters["bathrooms"] = match.group(1)

    budget = _parse_budget(lower)
    if budget:
        filters["budget"] = str(budget)

    match = _LOCATION.search(lower)
    if match:
        words = match.group(1).split()
        start, end = match.span(1)
        if len(words) > 1 and words[1] in _LOCATION_STOP_WORDS:
            end = start + len(words[0])
        if words[0] not in _LOCATION_STOP_WORDS:
            # Keep the user's own capitalisation
            filters["location"] = message[start:end]

    filters["intent"] = "search" if any(filters[key] for key in FILTER_KEYS) else "general"
    return filters


def fallback_chat_response(context: Optional[Dict[str, Any]] = None) -> str:
    found = (context or {}).get("propertiesFound")
    if isinstance(found, int) and found > 0:
        return f"Found {found} properties matching your criteria!"
    if found == 0:
        return "No properties found matching your criteria. Try adjusting your filters."
    return "I'm here to help! Try describing what you're looking for, or use the filters below."
