"""Security utilities -- prompt content guarding, input validation, URL safety."""
from .prompt_guard import TRUNCATION_MARKER, detect_injection_attempt, sanitize_for_prompt
from .validators import (
    ValidationError,
    validate_length,
    validate_not_empty,
    validate_session_id,
    validate_record_id,
    validate_in_choices,
    validate_url,
    validate_list_size,
)
