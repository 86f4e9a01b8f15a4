import re
from typing import Iterable, List, NamedTuple, Optional, Sequence

from messages import Message, VerificationResult


class CodePhrase(NamedTuple):
    """A lead-in that announces the code in one language, e.g. ``code is``."""

    locale: str
    lead_in: str


# Checked in order; the first phrase that matches decides the code
DEFAULT_PHRASES = (
    CodePhrase("zh", r"(?:验证码|代码)(?:为|是)"),
    CodePhrase("en", r"code is"),
    CodePhrase("es", r"código es"),
)


class CodeExtractor:
    """
    Extracts a 6 digit verification code from an email subject.

    A code is only accepted when it directly follows one of the known
    lead-in phrases, so order numbers and similar digits are ignored.
    """

    def __init__(self, phrases: Sequence[CodePhrase] = DEFAULT_PHRASES):
        self.phrases = tuple(phrases)
        self._patterns: List[re.Pattern] = [
            re.compile(rf"{phrase.lead_in}\s*[:：]?\s*(\d{{6}})(?!\d)", re.IGNORECASE)
            for phrase in self.phrases
        ]

    def with_phrase(self, locale: str, lead_in: str) -> "CodeExtractor":
        return CodeExtractor(self.phrases + (CodePhrase(locale, lead_in),))

    def extract(self, subject: Optional[str]) -> Optional[str]:
        """
        Find the verification code in a subject line.

        Args:
            subject: Email subject, may be empty or None

        Returns:
            The 6 digit code, or None if no known phrasing is present
        """
        if not subject:
            return None

        for pattern in self._patterns:
            match = pattern.search(subject)
            if match:
                return match.group(1)

        return None


default_extractor = CodeExtractor()


def extract_verification_code(subject: Optional[str]) -> Optional[str]:
    return default_extractor.extract(subject)


def find_latest_verification_code(messages: Iterable[Message],
                                  extractor: Optional[CodeExtractor] = None) -> Optional[VerificationResult]:
    """
    Return the first message, in the given order, whose subject carries a code.

    Args:
        messages: Messages already ranked newest first
        extractor: Extractor to use, defaults to the built-in phrases

    Returns:
        The verification result, or None if no subject yields a code
    """
    extractor = extractor or default_extractor

    for message in messages:
        code = extractor.extract(message.subject)
        if code:
            return VerificationResult(
                code=code,
                time=message.create_time,
                subject=message.subject,
                sender=message.sender,
            )

    return None
