from collections.abc import Sequence

from constants import MAX_FILE_TEXT_CHARS
from models import ChatMessage, FileUpload, MessageRole
import prompts


def format_history_line(message: ChatMessage) -> str:
    """Render one stored message as a prompt line."""
    if message.role == MessageRole.USER.value:
        return prompts.USER_LINE_TEMPLATE.format(content=message.content)
    return prompts.ASSISTANT_LINE_TEMPLATE.format(content=message.content)


def build_chat_prompt(
    history: Sequence[ChatMessage],
    message: str,
    file_context: str | None = None,
) -> str:
    """
    Assemble the flat instruction-and-history prompt sent to the model.

    Layout:
        <system preamble>
        <blank line>
        User: ... / Assistant: ...   (prior messages, oldest first)
        <file context block, if any>
        User: <new message>
        Assistant:

    Args:
        history: Prior messages in chronological order; the caller applies the cap.
        message: The new user message.
        file_context: Optional block describing an attached file.

    Returns:
        The prompt string.
    """
    lines = [prompts.CHAT_SYSTEM_PROMPT, ""]
    lines.extend(format_history_line(m) for m in history)

    if file_context:
        lines.append(file_context)

    lines.append(prompts.USER_LINE_TEMPLATE.format(content=message))
    lines.append(prompts.ASSISTANT_CUE)
    return "\n".join(lines)


def build_file_context(upload: FileUpload, text: str | None = None, is_image: bool = False) -> str:
    """
    Describe an attached file for the prompt.

    Text content is embedded (capped at MAX_FILE_TEXT_CHARS), images get a
    vision note, anything else gets a note naming the file and its type.
    """
    if is_image:
        return prompts.FILE_IMAGE_NOTE.format(original_name=upload.original_name)

    if text is None:
        return prompts.FILE_UNREADABLE_NOTE.format(
            original_name=upload.original_name,
            mime_type=upload.mime_type,
        )

    if len(text) > MAX_FILE_TEXT_CHARS:
        text = text[:MAX_FILE_TEXT_CHARS] + prompts.FILE_TEXT_TRUNCATED_NOTE

    return prompts.FILE_TEXT_TEMPLATE.format(
        original_name=upload.original_name,
        mime_type=upload.mime_type,
        text=text,
    )


def format_message(message: ChatMessage) -> dict:
    """Convert a stored message to the shape the history endpoint returns."""
    return {
        "role": message.role,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }
