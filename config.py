"""Service configuration, read from the environment (and a local .env file)."""
import json
import logging
import os

from dotenv import load_dotenv

from schemas import Room

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_ROOMS = [
    Room(id="general", name="General", description="Friendly public chat", is_adult=False),
    Room(id="builders", name="Memes", description="Gamers posting meme chaos", is_adult=False),
    Room(id="deals", name="Alliance", description="Squad coordination room", is_adult=False),
]


def _load_rooms(raw):
    if not raw:
        return list(DEFAULT_ROOMS)
    rooms = [Room.model_validate(item) for item in json.loads(raw)]
    ids = [room.id for room in rooms]
    if len(set(ids)) != len(ids):
        raise ValueError("CHAT_ROOMS contains duplicate room ids")
    return rooms


class Config:
    """Application settings"""

    # Shared secret every client presents in x-staticplay-app-key
    APP_KEY = os.getenv("STATICPLAY_APP_KEY", "VVXchat")

    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8787"))

    # Inline image payloads make bodies large; anything above this is refused
    MAX_BODY_BYTES = int(os.getenv("MAX_BODY_BYTES", str(8 * 1024 * 1024)))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Optional JSON list of {"id", "name", "description", "isAdult"} objects
    ROOMS = _load_rooms(os.getenv("CHAT_ROOMS"))


config = Config()
