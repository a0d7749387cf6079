"""Email syntax rules shared by the edge handler and the submission client."""
from email_validator import EmailNotValidError, validate_email


def normalize_email(email: str) -> str:
    return email.strip()


def is_valid_email(email: str) -> bool:
    """Syntactic check only: TLD required, no IP-literal domains, no display names."""
    normalized = normalize_email(email)
    if not normalized or any(ch.isspace() for ch in normalized):
        return False
    try:
        # Special-use domains (.local, .test, .localhost) are still valid syntax
        result = validate_email(
            normalized,
            check_deliverability=False,
            globally_deliverable=False,
            allow_smtputf8=True,
            allow_domain_literal=False,
            allow_display_name=False,
        )
    except EmailNotValidError:
        return False
    return "." in result.ascii_domain.strip(".")
