"""
Helpers for printing settings without exposing secrets.
"""

SECRET_MARKERS = ('PASSWORD', 'SECRET', 'KEY', 'TOKEN')


def mask_secret(value: str, visible: int = 4) -> str:
    """
    Obfuscate a secret for display.

    The last `visible` characters are shown after one '*' per hidden character;
    values too short to keep anything hidden are rendered as '*' only.

    Args:
        value: Secret to mask
        visible: Number of trailing characters to keep

    Returns:
        Masked string
    """
    if not value:
        return ''
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * (len(value) - visible) + value[-visible:]


def is_secret_name(name: str) -> bool:
    """Check if a variable name looks like it holds a secret."""
    upper = name.upper()
    return any(marker in upper for marker in SECRET_MARKERS)


def display_value(name: str, value) -> str:
    """Render a setting for display, masking it if the name looks secret."""
    if value is None:
        return ''
    value = str(value)
    return mask_secret(value) if is_secret_name(name) else value
