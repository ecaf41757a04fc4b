from linkguard.allowlist import AllowListResolver
from linkguard.settings import SettingsStore
from linkguard.utils.allowlist import read_allowlist


def test_static_list_matches_exact_and_subdomains():
    resolver = AllowListResolver()

    assert resolver.is_allowed("github.com") is True
    assert resolver.is_allowed("sub.github.com") is True
    assert resolver.is_allowed("a.b.github.com") is True
    assert resolver.is_allowed("notgithub.com") is False
    assert resolver.is_allowed("github.com.evil.test") is False


def test_hostnames_are_normalized():
    resolver = AllowListResolver(safe_domains={"Example.COM."})

    assert resolver.is_allowed("WWW.example.com") is True
    assert resolver.is_allowed("example.com.") is True
    assert resolver.is_allowed("") is False


def test_user_whitelist_is_exact_match():
    resolver = AllowListResolver(safe_domains=set(), user_whitelist={"intranet.corp.test"})

    assert resolver.is_allowed("intranet.corp.test") is True
    assert resolver.is_allowed("sub.intranet.corp.test") is False


def test_proceed_grant_consumed_once_but_host_persists():
    resolver = AllowListResolver(safe_domains=set())
    url = "https://x.test/a"

    resolver.grant_proceed(url)

    assert resolver.consume_proceed_url(url) is True
    assert resolver.consume_proceed_url(url) is False
    assert resolver.is_allowed("x.test") is True
    # Other pages on the host are covered by the host grant, not the URL grant
    assert resolver.consume_proceed_url("https://x.test/b") is False


def test_has_proceed_url_does_not_consume():
    resolver = AllowListResolver(safe_domains=set())
    resolver.grant_proceed("https://x.test/a")

    assert resolver.has_proceed_url("https://x.test/a") is True
    assert resolver.has_proceed_url("https://x.test/a") is True
    assert resolver.consume_proceed_url("https://x.test/a") is True


def test_attach_follows_settings_changes(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    store.add_whitelist_host("first.test")
    resolver = AllowListResolver(safe_domains=set())

    resolver.attach(store)
    assert resolver.is_allowed("first.test") is True

    store.add_whitelist_host("second.test")
    assert resolver.is_allowed("second.test") is True

    store.remove_whitelist_host("first.test")
    assert resolver.is_allowed("first.test") is False

    resolver.detach()
    store.add_whitelist_host("third.test")
    assert resolver.is_allowed("third.test") is False


def test_allowlist_missing_file_is_empty(tmp_path):
    assert read_allowlist(tmp_path / "absent.txt") == set()


def test_allowlist_file_skips_comments_and_urls(tmp_path):
    path = tmp_path / "safe_domains.txt"
    path.write_text("# trusted\n\nhttps://Intranet.Test/login\nexample.org\n")

    assert read_allowlist(path) == {"intranet.test", "example.org"}


def test_allowlist_file_inline_comments(tmp_path):
    path = tmp_path / "safe_domains.txt"
    path.write_text("intranet.test   # vpn only\n# whole-line comment\n")

    assert read_allowlist(path) == {"intranet.test"}
