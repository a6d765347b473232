"""
SQL Query Safety Validation
===========================
Textual policy gate applied to a learner's query before it reaches a sandbox:
- Forbidden-operation denylist (regex matchers, applied anywhere in the query)
- Allowed statement prefixes (SELECT / WITH)

No grammar parsing happens here. The sandbox itself is an isolated,
disposable in-memory database, so this layer stays deliberately simple.
"""

import re
import logging
from typing import List, Optional, Pattern, Sequence

from .schemas import ValidationResult

logger = logging.getLogger(__name__)

# Kept verbatim for client compatibility, although only SELECT/WITH pass the prefix check
FORBIDDEN_OPERATION_ERROR = "Query contains forbidden operations. Only SELECT, INSERT, and UPDATE are allowed."
INVALID_PREFIX_ERROR = "Query must start with SELECT or WITH statement."

DEFAULT_FORBIDDEN_PATTERNS = [
    r'drop\s+database',
    r'drop\s+table',
    r'alter\s+table',
    r'create\s+table',
    r'delete\s+from',
    r'truncate',
    r'pragma',
    r'attach',
    r'detach',
]

DEFAULT_ALLOWED_PREFIXES = ('select', 'with')


class SafetyValidator:
    """Data-driven denylist plus allowed-prefix check"""

    def __init__(self,
                 forbidden_patterns: Optional[Sequence[str]] = None,
                 allowed_prefixes: Optional[Sequence[str]] = None):
        patterns = DEFAULT_FORBIDDEN_PATTERNS if forbidden_patterns is None else forbidden_patterns
        self.forbidden_patterns: List[Pattern] = [
            re.compile(pattern, re.IGNORECASE) for pattern in patterns
        ]
        prefixes = DEFAULT_ALLOWED_PREFIXES if allowed_prefixes is None else allowed_prefixes
        self.allowed_prefixes = tuple(prefix.lower() for prefix in prefixes)

    def validate(self, query: str) -> ValidationResult:
        normalized = (query or "").strip().lower()

        for pattern in self.forbidden_patterns:
            if pattern.search(normalized):
                logger.info(f"Query rejected by forbidden pattern '{pattern.pattern}'")
                return ValidationResult(is_valid=False, error=FORBIDDEN_OPERATION_ERROR)

        if not normalized.startswith(self.allowed_prefixes):
            first_word = normalized.split()[0] if normalized else ''
            logger.info(f"Query rejected for leading keyword '{first_word}'")
            return ValidationResult(is_valid=False, error=INVALID_PREFIX_ERROR)

        return ValidationResult(is_valid=True)
