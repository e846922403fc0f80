"""
In-memory stores for rooms, DM threads, themes and profiles

Nothing here survives a restart. Each store owns its mappings; create one
instance per process (or per test) and hand it to the app.

Locking: every conversation log has its own lock so appends to one log
serialize while different logs proceed independently. Registry maps (threads,
themes, profiles) each have one structure-level lock.
"""
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from bson.objectid import ObjectId

from aliases import make_thread_id, normalize_alias, other_alias
from schemas import DmThread, Message, Profile, Room, ThemePreference

logger = logging.getLogger(__name__)

DEFAULT_THEME = ThemePreference(message_box_color="#101a2c", message_text_color="#e9f1ff")

HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

DEFAULT_SENDER = "User"


class StoreError(Exception):
    pass


class InvalidInput(StoreError):
    pass


class NotFound(StoreError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageLog:
    """Append-only message list for one conversation."""

    def __init__(self, conversation_id: str, clock=utcnow):
        self.conversation_id = conversation_id
        self._clock = clock
        self._lock = threading.Lock()
        self._messages: List[Message] = []

    def append(self, sender: str, text: str, image_data_url: str, on_append=None) -> Message:
        with self._lock:
            sent_at = self._clock()
            # sentAt never goes backwards within a log, even if the wall clock does
            if self._messages and sent_at < self._messages[-1].sent_at:
                sent_at = self._messages[-1].sent_at
            message = Message(
                id=f"{self.conversation_id}_{ObjectId()}",
                room_id=self.conversation_id,
                sender=sender,
                sent_at=sent_at,
                text=text,
                image_data_url=image_data_url,
            )
            self._messages.append(message)
            if on_append is not None:
                on_append(message)
            return message

    def snapshot(self) -> List[Message]:
        with self._lock:
            return list(self._messages)


@dataclass
class ThreadRecord:
    id: str
    labels: Tuple[str, str]
    updated_at: datetime
    log: MessageLog = field(repr=False)

    def view(self, self_alias: str, counterpart: Optional[str] = None) -> DmThread:
        return DmThread(
            id=self.id,
            other_alias=counterpart if counterpart is not None else other_alias(self.labels, self_alias),
            participants=list(self.labels),
            updated_at=self.updated_at,
        )


def _clean_content(sender, text, image_data_url):
    text = (text or "").strip()
    image_data_url = image_data_url or ""
    if not text and not image_data_url:
        raise InvalidInput("text or imageDataUrl is required")
    sender = (sender or "").strip() or DEFAULT_SENDER
    return sender, text, image_data_url


class ConversationStore:
    """Rooms, DM threads and their message logs."""

    def __init__(self, rooms: Iterable[Room], clock=utcnow):
        self._clock = clock
        self._rooms: Dict[str, Room] = {}
        self._room_logs: Dict[str, MessageLog] = {}
        for room in rooms:
            if room.id in self._rooms:
                raise ValueError(f"duplicate room id: {room.id}")
            self._rooms[room.id] = room
            self._room_logs[room.id] = MessageLog(room.id, clock)

        self._threads_lock = threading.Lock()
        self._threads: Dict[str, ThreadRecord] = {}

    # Rooms

    def list_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def _room_log(self, room_id: str) -> MessageLog:
        log = self._room_logs.get(room_id)
        if log is None:
            raise NotFound("Unknown room")
        return log

    def get_room_messages(self, room_id: str) -> List[Message]:
        return self._room_log(room_id).snapshot()

    def append_room_message(self, room_id: str, sender: str, text: str, image_data_url: Optional[str] = None) -> Message:
        log = self._room_log(room_id)
        sender, text, image_data_url = _clean_content(sender, text, image_data_url)
        message = log.append(sender, text, image_data_url)
        logger.debug("Appended message %s to room %s", message.id, room_id)
        return message

    # DM threads

    def open_dm_thread(self, self_alias: str, other: str) -> DmThread:
        self_alias = (self_alias or "").strip()
        other = (other or "").strip()
        if not self_alias or not other:
            raise InvalidInput("selfAlias and otherAlias are required")

        thread_id = make_thread_id(self_alias, other)
        with self._threads_lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                thread = ThreadRecord(
                    id=thread_id,
                    labels=(self_alias, other),
                    updated_at=self._clock(),
                    log=MessageLog(thread_id, self._clock),
                )
                self._threads[thread_id] = thread
                logger.info("Opened DM thread %s", thread_id)
            return thread.view(self_alias, counterpart=other)

    def list_dm_threads(self, self_alias: str) -> List[DmThread]:
        me = normalize_alias(self_alias)
        if not me:
            raise InvalidInput("selfAlias query is required")
        with self._threads_lock:
            mine = [
                thread for thread in self._threads.values()
                if me in {normalize_alias(label) for label in thread.labels}
            ]
            # sorted() is stable, so ties keep creation order
            mine = sorted(mine, key=lambda t: t.updated_at, reverse=True)
            return [thread.view(self_alias) for thread in mine]

    def _thread(self, thread_id: str) -> ThreadRecord:
        with self._threads_lock:
            thread = self._threads.get(thread_id)
        if thread is None:
            raise NotFound("Unknown DM thread")
        return thread

    def get_dm_messages(self, thread_id: str) -> List[Message]:
        return self._thread(thread_id).log.snapshot()

    def append_dm_message(self, thread_id: str, sender: str, text: str, image_data_url: Optional[str] = None) -> Message:
        thread = self._thread(thread_id)
        sender, text, image_data_url = _clean_content(sender, text, image_data_url)

        def touch(message: Message):
            with self._threads_lock:
                thread.updated_at = message.sent_at

        message = thread.log.append(sender, text, image_data_url, on_append=touch)
        logger.debug("Appended message %s to DM thread %s", message.id, thread_id)
        return message


class ThemeStore:
    """Per-user message colors."""

    def __init__(self, default: ThemePreference = DEFAULT_THEME):
        self._default = default
        self._lock = threading.Lock()
        self._themes: Dict[str, ThemePreference] = {}

    def get_theme(self, user_id: str) -> ThemePreference:
        with self._lock:
            return self._themes.get(user_id, self._default)

    def save_theme(self, user_id: str, box_color: str, text_color: str) -> ThemePreference:
        box_color = (box_color or "").strip()
        text_color = (text_color or "").strip()
        if not HEX_COLOR.match(box_color) or not HEX_COLOR.match(text_color):
            raise InvalidInput("Theme colors must be HEX like #101a2c")
        theme = ThemePreference(message_box_color=box_color.lower(), message_text_color=text_color.lower())
        with self._lock:
            self._themes[user_id] = theme
        logger.debug("Saved theme for user %s", user_id)
        return theme


class ProfileStore:
    """Per-user flags, currently only the mock age verification."""

    def __init__(self):
        self._lock = threading.Lock()
        self._profiles: Dict[str, Profile] = {}

    def get_profile(self, user_id: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                profile = Profile(user_id=user_id)
                self._profiles[user_id] = profile
            return profile.model_copy()

    def mark_verified(self, user_id: str) -> Profile:
        with self._lock:
            profile = Profile(user_id=user_id, is18_verified=True)
            self._profiles[user_id] = profile
        logger.info("User %s completed mock age verification", user_id)
        return profile.model_copy()
