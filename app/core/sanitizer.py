import re

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_IPV4_RE = re.compile(r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.)\d{1,3}\b")
_SECRET_RE = re.compile(
    r'(secret|token|password|private_key|api_key)["\']?\s*[:=]\s*["\']?[^"\'&\s,}]+',
    flags=re.IGNORECASE,
)


def _mask_part(part: str) -> str:
    return "***" if len(part) <= 2 else part[:2] + "***"


def mask_email(email: str) -> str:
    """Mask an email address for logs.

    ``user@example.com`` -> ``us***@ex***.com``; local parts of two characters
    or fewer collapse to ``***``; input without ``@`` becomes ``***``.
    """
    at_index = email.find("@")
    if at_index == -1:
        return "***"

    local_part = email[:at_index]
    domain_part = email[at_index + 1:]
    dot_index = domain_part.rfind(".")

    if dot_index == -1:
        masked_domain = _mask_part(domain_part)
    else:
        masked_domain = _mask_part(domain_part[:dot_index]) + domain_part[dot_index:]

    return f"{_mask_part(local_part)}@{masked_domain}"


def redact_pii(message: str) -> str:
    """Redact personally identifiable information from log messages.

    Masks emails with :func:`mask_email`, truncates IPv4 addresses and hides
    secret/token values that slip into formatted log lines.
    """
    if not isinstance(message, str):
        return str(message)

    message = _EMAIL_RE.sub(lambda m: mask_email(m.group()), message)

    # IPs (IPv4): 192.168.1.100 -> 192.168.1.***
    message = _IPV4_RE.sub(r"\1***", message)

    message = _SECRET_RE.sub(r"\1=[REDACTED]", message)

    return message
