"""
Centralized storage for model instructions and user-facing reply texts.
Separating prompts from logic makes them easier to edit, version, and test.
"""

# -----------------------------------------------------------------------------
# CHAT PROMPT
# -----------------------------------------------------------------------------

CHAT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Be friendly and concise in your responses."
)

USER_LINE_TEMPLATE = "User: {content}"
ASSISTANT_LINE_TEMPLATE = "Assistant: {content}"
ASSISTANT_CUE = "Assistant:"


# -----------------------------------------------------------------------------
# FILE CONTEXT (injected before the new user turn)
# -----------------------------------------------------------------------------

FILE_TEXT_TEMPLATE = (
    "The user attached a file named \"{original_name}\" ({mime_type}). "
    "Its content is:\n"
    "----- BEGIN FILE -----\n"
    "{text}\n"
    "----- END FILE -----\n"
    "Use this content to answer the user's message."
)

FILE_TEXT_TRUNCATED_NOTE = "\n[File content truncated]"

FILE_IMAGE_NOTE = (
    "The user attached an image named \"{original_name}\". "
    "The image is provided with this message; look at it carefully when answering."
)

FILE_UNREADABLE_NOTE = (
    "The user attached a file named \"{original_name}\" ({mime_type}). "
    "Its content could not be read as text; acknowledge the file and answer "
    "as well as you can from the message alone."
)


# -----------------------------------------------------------------------------
# IMAGE GENERATION
# -----------------------------------------------------------------------------

IMAGE_DESCRIPTION_TEMPLATE = (
    "I could not produce a picture for the following request, so describe the "
    "image in vivid prose instead. Cover the subject, composition, colors, "
    "lighting and mood in one or two short paragraphs.\n\n"
    "Requested image: {prompt}"
)

IMAGE_REPLY_TEMPLATE = (
    "Here is the image I generated for: \"{prompt}\"\n\n"
    "![{alt_text}]({image_url})"
)

PLACEHOLDER_REPLY_NOTES = {
    "random_image": (
        "\n\nThe image service was unavailable, so this is a creative "
        "placeholder picture rather than a rendering of your prompt."
    ),
    "local_placeholder": (
        "\n\nThe image services were unavailable, so this is a locally "
        "rendered placeholder showing your prompt."
    ),
}

IMAGE_DESCRIPTION_REPLY_TEMPLATE = (
    "I couldn't generate an image right now, but here is a description of "
    "\"{prompt}\":\n\n{description}"
)


# -----------------------------------------------------------------------------
# ERRORS
# -----------------------------------------------------------------------------

GENERIC_ERROR_MESSAGE = "Sorry, I encountered an error. Please try again."
