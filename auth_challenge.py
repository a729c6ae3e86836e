"""
WWW-Authenticate and Link Header Parsing
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class AuthChallenge:
    """Parsed authentication challenge from a WWW-Authenticate header"""

    scheme: str
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def realm(self) -> Optional[str]:
        return self.params.get("realm")

    @property
    def service(self) -> Optional[str]:
        return self.params.get("service")

    @property
    def scope(self) -> Optional[str]:
        return self.params.get("scope")


def parse_www_authenticate(header: str) -> Optional[AuthChallenge]:
    """Parse a WWW-Authenticate header value

    Handles both quoted and bare values, e.g.:
      Basic realm="Registry"
      Bearer realm="https://auth.docker.io/token",service="registry.docker.io",scope="repository:library/alpine:pull"
    """
    header = (header or "").strip()
    if not header:
        return None

    scheme, _, rest = header.partition(" ")
    params: Dict[str, str] = {}

    remaining = rest.strip()
    while remaining:
        eq = remaining.find("=")
        comma = remaining.find(",")

        # Pair without '=' before the next separator: skip it
        if eq == -1 or (comma != -1 and comma < eq):
            if comma == -1:
                break
            remaining = remaining[comma + 1:].strip()
            continue

        key = remaining[:eq].strip()
        remaining = remaining[eq + 1:].lstrip()

        if remaining.startswith('"'):
            remaining = remaining[1:]
            end = remaining.find('"')
            if end == -1:
                end = len(remaining)
            value = remaining[:end]
            remaining = remaining[end + 1:]
            # Drop anything between the closing quote and the next comma
            comma = remaining.find(",")
            remaining = remaining[comma + 1:] if comma != -1 else ""
        else:
            end = remaining.find(",")
            if end == -1:
                end = len(remaining)
            value = remaining[:end].strip()
            remaining = remaining[end + 1:]

        if key:
            params[key] = value
        remaining = remaining.strip()

    return AuthChallenge(scheme=scheme, params=params)


def parse_link_header(header: str) -> Optional[str]:
    """Extract the next-page query string from a pagination Link header

    Format: </v2/_catalog?n=100&last=repo>; rel="next"
    """
    if not header:
        return None

    for part in header.split(","):
        segments = [s.strip() for s in part.split(";")]
        rels = [s for s in segments[1:] if s.replace(" ", "") in ('rel="next"', "rel=next")]
        if not rels:
            continue
        url = segments[0].lstrip("<").rstrip(">")
        if "?" not in url:
            return None
        return url.split("?", 1)[1]

    return None
