import logging

# -----------------------------------------------------------------------------
# Logger configuration for the "signup" domain
# -----------------------------------------------------------------------------
logger = logging.getLogger("signup")
logger.setLevel(logging.INFO)

handler = logging.StreamHandler()
formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
handler.setFormatter(formatter)

# Avoid adding duplicate handlers if the module is imported multiple times
if not logger.handlers:
    logger.addHandler(handler)


# -----------------------------------------------------------------------------
# Identifier redaction utility
# -----------------------------------------------------------------------------
def redact(value) -> str:
    """
    Redact an identifier (username, visitor id, request token) for logging.

    Rules:
    - Keep first and last character
    - Replace all middle characters with '*'
    - Values of two characters or fewer are masked entirely

    Examples:
        "alice"          → "a***e"
        "V1"             → "**"
        None / ""        → "<empty>"
    """
    if not value:
        return "<empty>"

    text = str(value)

    if len(text) <= 2:
        return "*" * len(text)

    return text[0] + ("*" * (len(text) - 2)) + text[-1]
