"""Plain-text chat transcript written when a session closes."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Iterable

from gemchat.conversation import Message
from gemchat.exceptions import HistoryPersistError


logger = logging.getLogger("gemchat.history")


def history_filename(started_at: datetime) -> str:
    """gemchat-YYYY-MM-DDTHH-mm-ss.txt for the session start time."""
    return f"gemchat-{started_at.strftime('%Y-%m-%dT%H-%M-%S')}.txt"


def format_transcript(messages: Iterable[Message]) -> str:
    """One '[local time] ROLE: content' block per non-system message."""
    blocks = []
    for message in messages:
        if message.role == "system":
            continue
        stamp = datetime.fromtimestamp(message.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        blocks.append(f"[{stamp}] {message.role.upper()}: {message.content}")
    return "\n\n".join(blocks) + "\n"


def write_transcript(directory: str, filename: str, text: str) -> str:
    """Create the directory if needed and write the transcript file."""
    try:
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    except PermissionError:
        raise
    except OSError as e:
        raise HistoryPersistError(f"Failed to write chat history to {directory}: {e}") from e
    return path


def save_chat_history(
    messages: Iterable[Message],
    started_at: datetime,
    directory: str,
    fallback_directory: str,
) -> str | None:
    """
    Save the transcript to the per-user directory, falling back to the
    project-local directory on a permissions failure.
    Returns the written path, or None when nothing could be saved.
    """
    text = format_transcript(messages)
    filename = history_filename(started_at)
    try:
        try:
            path = write_transcript(directory, filename, text)
        except PermissionError:
            logger.warning(
                "No permission to write %s, using %s instead", directory, fallback_directory
            )
            try:
                path = write_transcript(fallback_directory, filename, text)
            except PermissionError as e:
                raise HistoryPersistError(
                    f"Failed to write chat history to {fallback_directory}: {e}"
                ) from e
    except HistoryPersistError as e:
        logger.error("%s", e)
        return None

    logger.info("Chat history saved to %s", path)
    return path
