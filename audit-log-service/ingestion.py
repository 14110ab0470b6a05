# ingestion.py
import hashlib
import json

from errors import ValidationError

MAX_DOMAIN_LENGTH = 253
MAX_USER_AGENT_LENGTH = 512
# signed 32-bit, the range of an INTEGER column on every supported store
SCORE_MIN = -2**31
SCORE_MAX = 2**31 - 1


def _encodable(value):
    # JSON escapes can decode to lone surrogates, which no driver can encode
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def normalize_domain(value):
    """Trim and lower-case a domain. Not validated as a DNS name."""
    if value is None:
        raise ValidationError("missing domain", field="domain")
    if not isinstance(value, str):
        raise ValidationError("invalid domain", field="domain")
    domain = value.strip().lower()
    if not domain:
        raise ValidationError("missing domain", field="domain")
    if len(domain) > MAX_DOMAIN_LENGTH or not _encodable(domain):
        raise ValidationError("invalid domain", field="domain")
    return domain


def serialize_results(value):
    """Store the caller's results verbatim as JSON; the shape is never inspected."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


def parse_score(value):
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("invalid score", field="score")
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise ValidationError("invalid score", field="score")
    return value


def apply_email_policy(value, mode):
    """
    Only the top-level `email` field is ever considered, and only when the
    operator has opted in:
      off  -> dropped
      hash -> sha256 of the trimmed, lower-cased address
      raw  -> stored as sent
    """
    if mode == "off" or value is None:
        return None
    if not isinstance(value, str) or not value.strip() or not _encodable(value):
        raise ValidationError("invalid email", field="email")
    if mode == "hash":
        return hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()
    return value.strip()


def truncate_user_agent(value):
    if not value:
        return None
    return value[:MAX_USER_AGENT_LENGTH]


def parse_event(data, email_mode="off"):
    """
    Validate one inbound event body and return the caller-controlled columns.

    Server-trusted fields (timestamp, client_origin) are not read from `data`;
    any such keys sent by the client are ignored.
    """
    if not isinstance(data, dict):
        raise ValidationError("invalid JSON body")

    return {
        "domain": normalize_domain(data.get("domain")),
        "results": serialize_results(data.get("results")),
        "score": parse_score(data.get("score")),
        "email": apply_email_policy(data.get("email"), email_mode),
    }
