import os
import threading
from concurrent.futures import ThreadPoolExecutor
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from depinspect.maven_base import ArtifactNotFoundError, Coordinate, InvalidCoordinateError
from depinspect.maven_remote import (
    CENTRAL,
    HttpRepo,
    MvnOption,
    default_mvn_option,
    fetch_pom,
    parse_mvn_settings,
    read_mvn_option,
)

POM = (
    b"<project><groupId>org.example</groupId><artifactId>demo</artifactId>"
    b"<version>1.0</version></project>"
)


@pytest.fixture
def server(monkeypatch):
    for var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    hits = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            hits.append(self.path)
            if self.path.endswith("demo-1.0.pom"):
                code, body = 200, POM
            elif self.path.endswith("broken-1.0.pom"):
                code, body = 200, b"not xml at all <"
            elif self.path.endswith("fail-1.0.pom"):
                code, body = 500, b"oops"
            else:
                code, body = 404, b"missing"
            self.send_response(code)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_port}/repo/", hits
    httpd.shutdown()
    httpd.server_close()


def test_pom_url_layout():
    repo = HttpRepo(CENTRAL)
    url = repo.pom_url(Coordinate("org.example", "demo", "1.0"))
    assert url == "https://repo1.maven.org/maven2/org/example/demo/1.0/demo-1.0.pom"


def test_pom_url_ignores_trailing_slash():
    c = Coordinate("a.b.c", "lib", "2")
    assert HttpRepo("http://host/base").pom_url(c) == HttpRepo("http://host/base/").pom_url(c)


def test_fetch_parses_and_caches(server):
    base, hits = server
    repo = HttpRepo(base)
    c = Coordinate("org.example", "demo", "1.0")
    first = repo.fetch(c)
    second = repo.fetch(c)
    assert first.artifact_id == "demo"
    assert second is first
    assert len(hits) == 1


def test_concurrent_fetch_requests_once(server):
    base, hits = server
    repo = HttpRepo(base)
    c = Coordinate("org.example", "demo", "1.0")
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: repo.fetch(c), range(8)))
    assert all(r is results[0] for r in results)
    assert len(hits) == 1


def test_fetch_missing_is_cached(server):
    base, hits = server
    repo = HttpRepo(base)
    c = Coordinate("org.example", "nothing", "1.0")
    with pytest.raises(ArtifactNotFoundError):
        repo.fetch(c)
    with pytest.raises(ArtifactNotFoundError):
        repo.fetch(c)
    assert len(hits) == 1


def test_fetch_server_error(server):
    base, _ = server
    with pytest.raises(RuntimeError, match="http 500"):
        HttpRepo(base).fetch(Coordinate("org.example", "fail", "1.0"))


def test_fetch_pom_bad_xml(server):
    base, _ = server
    with pytest.raises(ValueError):
        fetch_pom(base + "org/example/broken/1.0/broken-1.0.pom")


def test_fetch_invalid_coordinate():
    with pytest.raises(InvalidCoordinateError):
        HttpRepo(CENTRAL).fetch(Coordinate("org.example", "demo", "[1.0,2.0)"))


def test_default_option():
    option = default_mvn_option()
    assert option.remote == ["https://repo1.maven.org/maven2/"]
    assert option.local_repo_path == os.path.join(os.path.expanduser("~"), ".m2", "repository")


def test_parse_settings_with_mirrors_and_local_repo():
    data = b"""<?xml version="1.0"?>
<settings xmlns="http://maven.apache.org/SETTINGS/1.0.0">
  <localRepository>${user.home}/custom-repo</localRepository>
  <mirrors>
    <mirror><id>m1</id><url>http://mirror.example.com/maven</url></mirror>
    <mirror><id>m2</id></mirror>
  </mirrors>
</settings>"""
    option = parse_mvn_settings(data)
    assert option.remote == ["http://mirror.example.com/maven", CENTRAL]
    assert option.local_repo_path == os.path.expanduser("~") + "/custom-repo"


def test_parse_settings_invalid_gives_default():
    option = parse_mvn_settings(b"")
    assert option == default_mvn_option()
    assert isinstance(option, MvnOption)


def test_read_option_from_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    m2 = tmp_path / ".m2"
    m2.mkdir()
    (m2 / "settings.xml").write_text(
        "<settings><localRepository>/srv/repo</localRepository></settings>"
    )
    option = read_mvn_option()
    assert option.local_repo_path == "/srv/repo"
    assert option.remote == [CENTRAL]


def test_read_option_without_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("PATH", str(tmp_path))
    assert read_mvn_option() == default_mvn_option()