import json
import logging
import threading

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from filter_builder import build_property_filter, parse_int, validate_property_query
from memory_store import InMemoryListingStore
from models import (
    ChatRequest,
    ExtractedFilters,
    ExtractRequest,
    PreferencesRequest,
    SavePropertyRequest,
    SearchCriteria,
)
from mongo_store import MongoListingStore
from nlp import (
    NLPServiceError,
    extract_filters_fallback,
    extract_filters_from_text,
    fallback_chat_response,
    generate_chat_response,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Property Search Chatbot API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_store = None
_store_lock = threading.Lock()


def get_store():
    """Returns the process-wide listing store, created on first use."""
    global _store
    if _store is not None:
        return _store
    with _store_lock:
        if _store is None:
            _store = _create_store()
    return _store


def _create_store():
    if config.STORE_BACKEND == "memory":
        properties = []
        if config.SEED_FILE:
            with open(config.SEED_FILE, "r", encoding="utf-8") as f:
                properties = json.load(f)
        logger.info(f"Using in-memory store with {len(properties)} properties")
        return InMemoryListingStore(properties)
    logger.info(f"Using MongoDB store at {config.MONGO_URI}")
    return MongoListingStore()


def send_success(data=None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": True, "message": message, "data": data}),
    )


def send_error(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return send_error(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return send_error(message, 400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Error in {request.method} {request.url.path}: {exc}", exc_info=exc)
    return send_error("Internal server error", 500)


@app.get("/api/health")
def health():
    return {"success": True, "message": "Server is running"}


# Properties ---------------------------------------------------------------

@app.get("/api/properties")
def get_properties(criteria: SearchCriteria = Depends(), store=Depends(get_store)):
    query = criteria.model_dump(exclude_none=True)

    error = validate_property_query(query)
    if error:
        raise HTTPException(status_code=400, detail=error)

    query_filter = build_property_filter(query)
    logger.debug(f"Search filters: {query_filter}")

    properties = store.find_properties(query_filter, config.RESULT_LIMIT)
    logger.info(f"Found {len(properties)} properties")
    return send_success(properties, f"Found {len(properties)} properties")


@app.get("/api/properties/{property_id}")
def get_property_by_id(property_id: str, store=Depends(get_store)):
    public_id = parse_int(property_id)
    prop = store.get_property(public_id) if public_id is not None else None
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return send_success(prop)


# Preferences --------------------------------------------------------------

@app.get("/api/preferences/{user_id}")
def get_user_preferences(user_id: str, store=Depends(get_store)):
    record = store.get_preferences(user_id)
    if not record:
        return send_success(None, "No preferences found")
    return send_success(record)


@app.post("/api/preferences")
def save_user_preferences(payload: PreferencesRequest, store=Depends(get_store)):
    if not payload.userId:
        raise HTTPException(status_code=400, detail="User ID is required")

    record = store.save_preferences(
        payload.userId,
        saved_properties=payload.savedProperties,
        preferences=payload.preferences,
        search_history=payload.searchHistory,
    )
    return send_success(record, "Preferences saved successfully")


@app.post("/api/preferences/{user_id}/save")
def save_property(user_id: str, payload: SavePropertyRequest, store=Depends(get_store)):
    prop = store.get_property_by_object_id(payload.propertyId)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")

    record = store.add_saved_property(user_id, prop["_id"])
    return send_success(record, "Property saved to favorites")


@app.delete("/api/preferences/{user_id}/save/{property_id}")
def remove_property(user_id: str, property_id: str, store=Depends(get_store)):
    record = store.remove_saved_property(user_id, property_id)
    return send_success(record, "Property removed from favorites")


# NLP ----------------------------------------------------------------------

@app.post("/api/nlp/extract")
def extract_filters(payload: ExtractRequest):
    if not payload.message:
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        filters = extract_filters_from_text(payload.message, payload.conversationHistory)
    except NLPServiceError as ex:
        logger.warning(f"Falling back to keyword extraction: {ex}")
        filters = extract_filters_fallback(payload.message)
    return send_success(ExtractedFilters(**filters).model_dump())


@app.post("/api/nlp/chat")
def generate_chat(payload: ChatRequest):
    if not payload.message:
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        reply = generate_chat_response(payload.message, payload.context)
    except NLPServiceError as ex:
        logger.warning(f"Falling back to canned reply: {ex}")
        reply = fallback_chat_response(payload.context)
    return send_success(reply)


if __name__ == "__main__":
    logger.info(f"OpenAI API key loaded: {'yes' if config.OPENAI_API_KEY else 'NO - missing!'}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
