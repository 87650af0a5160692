"""Detection and redaction of contact details in lender-written text.

Listings and messages must keep communication inside the platform, so
descriptions are scanned for e-mail addresses, phone numbers, social handles,
links, platform names and phrases that usually precede them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

FILTER_PATTERNS: Dict[str, Pattern[str]] = {
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
    "phone": re.compile(r"(?:\+?\d{1,3}[-.]?)?\(?\d{3}\)?[-.]?\d{3}[-.]?\d{4}"),
    "socialMedia": re.compile(r"(?:^|\s)[@#][\w.]+"),
    "websites": re.compile(r"(?:https?://)?(?:www\.)?[\w-]+\.[\w.-]+"),
    "commonPlatforms": re.compile(
        r"(?:whatsapp|telegram|signal|facebook|instagram|snap|twitter|tiktok|venmo|paypal|cashapp)",
        re.IGNORECASE,
    ),
    "obfuscatedEmail": re.compile(r"[a-zA-Z0-9._%+-]+\s*[@＠]\s*[a-zA-Z0-9.-]+\s*\.\s*[a-zA-Z]{2,}"),
    "obfuscatedPhone": re.compile(r"(?:\+?\d{1,3}[-. ]?)?\(?\d{3}\)?[-. ]?\d{3}[-. ]?\d{4}"),
    "spelledOutDomains": re.compile(
        r"\b(?:gmail|yahoo|hotmail|outlook)\s*(?:dot|period|\.|punkt)\s*(?:com|org|net|edu)\b",
        re.IGNORECASE,
    ),
}

SUSPICIOUS_PHRASES: List[str] = [
    "contact me",
    "reach me",
    "my number",
    "my email",
    "my contact",
    "direct message",
    "dm me",
    "pm me",
    "text me",
    "call me",
    "let's talk",
    "get in touch",
    "reach out",
    "message me",
    "connect with me",
    "find me",
    "my profile",
    "my handle",
    "my account",
    "dot com",
    "at gmail",
    "at yahoo",
    "at hotmail",
]

SUSPICIOUS_PHRASE = "suspicious_phrase"
REDACTED = "[redacted]"

WARNING_MESSAGES: Dict[str, str] = {
    "email": "Email addresses are not allowed for your security. Please use the in-app messaging system.",
    "phone": "Phone numbers are not allowed for your security. Please use the in-app messaging system.",
    "socialMedia": "Social media handles are not allowed. Please keep all communication within the app.",
    "websites": "External website links are not allowed for security reasons.",
    SUSPICIOUS_PHRASE: (
        "Your message contains language suggesting an attempt to share contact information. "
        "Please keep all communication within the app."
    ),
}
DEFAULT_WARNING = "Your message contains content that is not allowed. Please keep all communication within the app."


@dataclass(slots=True)
class ContentScan:
    has_personal_info: bool
    kind: Optional[str] = None
    match: Optional[str] = None

    @property
    def warning(self) -> Optional[str]:
        if not self.has_personal_info:
            return None
        return WARNING_MESSAGES.get(self.kind or "", DEFAULT_WARNING)

    def to_dict(self) -> Dict[str, object]:
        return {
            "hasPersonalInfo": self.has_personal_info,
            "type": self.kind,
            "match": self.match,
            "warning": self.warning,
        }


def detect_personal_info(text: Optional[str]) -> ContentScan:
    """Return the first contact-detail pattern or suspicious phrase found in ``text``."""

    if not text:
        return ContentScan(has_personal_info=False)

    for kind, pattern in FILTER_PATTERNS.items():
        found = pattern.search(text)
        if found:
            return ContentScan(has_personal_info=True, kind=kind, match=found.group(0).strip())

    lowered = text.lower()
    for phrase in SUSPICIOUS_PHRASES:
        if phrase in lowered:
            return ContentScan(has_personal_info=True, kind=SUSPICIOUS_PHRASE, match=phrase)

    return ContentScan(has_personal_info=False)


def redact_personal_info(text: str) -> str:
    redacted = text
    for pattern in FILTER_PATTERNS.values():
        redacted = pattern.sub(REDACTED, redacted)
    return redacted


def scan_listing_text(details: Optional[dict]) -> List[str]:
    """Warnings for the free-text fields of a listing, one per offending field."""

    warnings: List[str] = []
    if not isinstance(details, dict):
        return warnings

    for field_name in ("title", "description", "careInstructions"):
        value = details.get(field_name)
        if not isinstance(value, str):
            continue
        result = detect_personal_info(value)
        if result.has_personal_info:
            warnings.append(f"{field_name}: {result.warning}")
    return warnings
