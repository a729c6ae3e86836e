from auth_challenge import parse_link_header, parse_www_authenticate


def test_parse_bearer_challenge():
    challenge = parse_www_authenticate(
        'Bearer realm="https://auth.docker.io/token",service="registry.docker.io",'
        'scope="repository:library/alpine:pull"'
    )

    assert challenge.scheme == "Bearer"
    assert challenge.realm == "https://auth.docker.io/token"
    assert challenge.service == "registry.docker.io"
    assert challenge.scope == "repository:library/alpine:pull"


def test_parse_basic_challenge():
    challenge = parse_www_authenticate('Basic realm="Registry Realm"')

    assert challenge.scheme == "Basic"
    assert challenge.params == {"realm": "Registry Realm"}
    assert challenge.service is None


def test_empty_and_whitespace_headers_yield_none():
    assert parse_www_authenticate("") is None
    assert parse_www_authenticate("   ") is None


def test_scheme_only():
    challenge = parse_www_authenticate("Negotiate")

    assert challenge.scheme == "Negotiate"
    assert challenge.params == {}


def test_quoted_values_keep_commas_and_spaces():
    challenge = parse_www_authenticate(
        'Bearer scope="repository:a:pull,push", realm="My Realm , inc"'
    )

    assert challenge.params["scope"] == "repository:a:pull,push"
    assert challenge.params["realm"] == "My Realm , inc"


def test_unquoted_values_and_whitespace_trimmed():
    challenge = parse_www_authenticate("Bearer  realm = https://auth.example/token , service=registry ")

    assert challenge.params == {"realm": "https://auth.example/token", "service": "registry"}


def test_malformed_pair_is_skipped():
    challenge = parse_www_authenticate('Bearer realm="r", garbage, service="s"')

    assert challenge.params == {"realm": "r", "service": "s"}


def test_unknown_keys_retained_and_last_duplicate_wins():
    challenge = parse_www_authenticate('Bearer error="insufficient_scope",realm="a",realm="b"')

    assert challenge.params["error"] == "insufficient_scope"
    assert challenge.realm == "b"


def test_link_header_quoted_rel():
    assert parse_link_header('</v2/_catalog?n=50&last=foo>; rel="next"') == "n=50&last=foo"


def test_link_header_unquoted_rel():
    assert parse_link_header("</v2/_catalog?n=10&last=bar>; rel=next") == "n=10&last=bar"


def test_link_header_without_next():
    assert parse_link_header('</v2/_catalog?n=10>; rel="prev"') is None
    assert parse_link_header("") is None
    assert parse_link_header(None) is None


def test_link_header_picks_next_among_several():
    header = '</v2/_catalog?n=10&last=a>; rel="prev", </v2/_catalog?n=10&last=z>; rel="next"'

    assert parse_link_header(header) == "n=10&last=z"
