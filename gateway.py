import logging
import re
from typing import List, Optional, Protocol

import google.generativeai as genai
from better_profanity import Profanity
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, get_documents, utcnow
from errors import UpstreamError, ValidationError
from schemas import Message

logger = logging.getLogger(__name__)

COLLECTION = "message"


class ProfanityFilter(Protocol):
    def contains_profanity(self, text: str) -> bool: ...


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


def build_profanity_filter() -> Profanity:
    profanity = Profanity()
    profanity.load_censor_words()
    return profanity


class GeminiTextGenerator:
    """Single-shot text generation against a Gemini model."""

    def __init__(self, api_key: Optional[str], model_name: str):
        if api_key:
            genai.configure(api_key=api_key)
        self.model_name = model_name
        self.model = genai.GenerativeModel(model_name)

    def generate(self, prompt: str) -> str:
        response = self.model.generate_content(prompt)
        return response.text


class ModerationGateway:
    def __init__(self, database: Database, profanity: ProfanityFilter, generator: TextGenerator):
        self.db = database
        self.profanity = profanity
        self.generator = generator

    def post_message(self, sender: Optional[str], content: Optional[str], is_global: bool) -> dict:
        if not content or not content.strip():
            raise ValidationError("Message content is required")
        if self.profanity.contains_profanity(content):
            logger.info(f"Rejected message from {sender!r}: inappropriate language")
            raise ValidationError("Failed to send message. Content contains inappropriate language.")

        message = Message(sender=sender or "", content=content, isGlobal=bool(is_global), timestamp=utcnow())
        message_id = create_document(self.db, COLLECTION, message)
        return {"_id": message_id, **message.model_dump()}

    def list_global(self) -> List[dict]:
        return get_documents(self.db, COLLECTION, {"isGlobal": True}, sort=[("timestamp", DESCENDING)])

    def list_by_department(self, department: str) -> List[dict]:
        # Department is inferred from the sender text, not stored on the message
        return get_documents(
            self.db,
            COLLECTION,
            {"isGlobal": False, "sender": {"$regex": re.escape(department), "$options": "i"}},
            sort=[("timestamp", DESCENDING)],
        )

    def chat(self, message: Optional[str]) -> str:
        if not message or not message.strip():
            raise ValidationError("No message provided.")
        try:
            return self.generator.generate(message)
        except Exception as e:
            logger.error(f"Text generation failed: {str(e)}")
            raise UpstreamError("An error occurred while processing your request.", error=str(e))
