from typing import Tuple

INJECTION_PATTERNS = [
    "ignore previous instructions",
    "ignore all previous instructions",
    "disregard the above",
    "system prompt",
    "developer message",
    "you are chatgpt",
    "you are now",
    "exfiltrate",
    "api key",
]


def detect_prompt_injection(text: str) -> Tuple[bool, str]:
    """Lightweight heuristic detector: returns (True, pattern) if text contains typical injection phrasing. Uploaded PDFs and transcripts are untrusted; retrieval still uses them but pack_context prepends a security note."""
    t = (text or "").lower()
    for p in INJECTION_PATTERNS:
        if p in t:
            return True, p
    return False, ""
