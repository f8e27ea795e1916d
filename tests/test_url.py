"""Tests for canonical URLs, domain scope and link discovery."""

from civicdata.crawler.url import (
    DomainScope,
    discover_links,
    has_file_extension,
    homepage_of,
    is_ignored_param,
    normalize_domain,
    normalize_url,
    resolve_url,
)


class TestNormalizeUrl:
    """Equivalent URL spellings collapse to one canonical form."""

    def test_strips_fragment_default_port_and_trailing_slash(self):
        """Fragment, :443 and trailing slash are dropped; host is lowercased."""
        assert (
            normalize_url("HTTPS://Council.Example.gov.uk:443/Planning/#top")
            == "https://council.example.gov.uk/Planning"
        )

    def test_keeps_non_default_port(self):
        """Only the scheme's default port is dropped."""
        assert normalize_url("http://council.example.gov.uk:8080/x") == "http://council.example.gov.uk:8080/x"

    def test_drops_tracking_params_and_sorts_query(self):
        """utm_* and click ids are removed and remaining params sorted."""
        url = "https://council.example.gov.uk/search?q=bins&utm_source=x&a=1&gclid=abc"
        assert normalize_url(url) == "https://council.example.gov.uk/search?a=1&q=bins"

    def test_drops_session_ids(self):
        """Session ids in the path or query never make a page look new."""
        assert (
            normalize_url("https://council.example.gov.uk/Planning;jsessionid=ABC123?PHPSESSID=x&ref=7")
            == "https://council.example.gov.uk/Planning?ref=7"
        )

    def test_custom_ignored_params(self):
        """The ignore list is configurable and supports trailing wildcards."""
        url = "https://council.example.gov.uk/news?page=2&sort=date&utm_medium=email"
        assert normalize_url(url, ignored_params=("sort",)) == (
            "https://council.example.gov.uk/news?page=2&utm_medium=email"
        )
        assert is_ignored_param("UTM_Campaign")
        assert not is_ignored_param("page")

    def test_rejects_non_http_schemes(self):
        """Only http(s) absolute URLs are accepted."""
        assert normalize_url("ftp://council.example.gov.uk/file") is None
        assert normalize_url("/relative/path") is None
        assert normalize_url("") is None
        assert normalize_url("https://council.example.gov.uk:notaport/") is None

    def test_collapses_dot_segments(self):
        """Path dot segments and repeated slashes are resolved."""
        assert normalize_url("https://a.gov.uk//x/./y/../z") == "https://a.gov.uk/x/z"
        assert normalize_url("https://a.gov.uk/../../x") == "https://a.gov.uk/x"


class TestScope:
    """Domain normalization and allow-list matching."""

    def test_normalize_domain_strips_www(self):
        """www. prefix and case are ignored."""
        assert normalize_domain("WWW.Council.Example.gov.uk") == "council.example.gov.uk"
        assert normalize_domain("https://www.example.gov.uk/path") == "example.gov.uk"
        assert normalize_domain("") == ""

    def test_subdomains_match_longest_allowed_domain(self):
        """A subdomain matches its most specific allow-listed parent."""
        scope = DomainScope(["example.gov.uk", "planning.example.gov.uk", "www.example.gov.uk"])
        assert len(scope) == 2
        assert scope.match("https://planning.example.gov.uk/x") == "planning.example.gov.uk"
        assert scope.match("https://www.example.gov.uk/") == "example.gov.uk"
        assert scope.match("https://notexample.gov.uk/") is None
        assert "https://democracy.example.gov.uk/ieListMeetings.aspx" in scope

    def test_homepage_and_extension_helpers(self):
        """Homepage keeps scheme and netloc; extensions match the path only."""
        assert homepage_of("https://a.gov.uk/x/y?z=1") == "https://a.gov.uk/"
        assert has_file_extension("https://a.gov.uk/report.PDF", [".pdf"])
        assert not has_file_extension("https://a.gov.uk/pdf?x=.pdf", [".pdf"])


class TestLinkDiscovery:
    """Link discovery from anchors."""

    def test_resolves_relative_links_and_skips_special_schemes(self):
        """mailto/tel/javascript and fragments are not links to crawl."""
        assert resolve_url("https://a.gov.uk/x/", "../y") == "https://a.gov.uk/y"
        assert resolve_url("https://a.gov.uk/", "mailto:info@a.gov.uk") is None
        assert resolve_url("https://a.gov.uk/", "tel:01234567890") is None
        assert resolve_url("https://a.gov.uk/", "javascript:void(0)") is None
        assert resolve_url("https://a.gov.uk/", "#main") is None
        assert resolve_url("https://a.gov.uk/", None) is None

    def test_filters_out_of_scope_nofollow_and_duplicates(self):
        """Links keep document order, stay in scope and appear once."""
        html = """
        <a href="/one">One</a>
        <a href="/one#again">One again</a>
        <a href="/one?utm_source=newsletter">One from the newsletter</a>
        <a href="https://other.example.com/x">Other</a>
        <a href="/hidden" rel="nofollow">Hidden</a>
        <area href="/two">
        """
        links = discover_links(html, base_url="https://a.gov.uk/", scope=DomainScope(["a.gov.uk"]))
        assert links == ["https://a.gov.uk/one", "https://a.gov.uk/two"]

    def test_include_nofollow(self):
        """nofollow links are kept when asked for."""
        links = discover_links(
            '<a href="/hidden" rel="nofollow">x</a>',
            base_url="https://a.gov.uk/",
            include_nofollow=True,
        )
        assert links == ["https://a.gov.uk/hidden"]

    def test_base_element_overrides_page_url(self):
        """Relative links resolve against the document's <base href>."""
        html = '<head><base href="https://a.gov.uk/council/"></head><body><a href="minutes">Minutes</a></body>'
        assert discover_links(html, base_url="https://a.gov.uk/index.aspx") == ["https://a.gov.uk/council/minutes"]
