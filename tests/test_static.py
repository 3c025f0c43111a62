"""
Tests for LoadMock Static Files

Tests directory mounts including:
- Serving files and index documents
- Content types
- Traversal protection and fall-through
"""

import pytest
from fastapi.testclient import TestClient

from loadmock import MockServer
from loadmock.app import MockRequest, MockResponse, StaticFiles, mount_template


@pytest.fixture
def docroot(tmp_path):
    """Directory with a few files and a secret next to it."""
    root = tmp_path / 'public'
    (root / 'css').mkdir(parents=True)
    (root / 'index.html').write_text('<h1>home</h1>')
    (root / 'css' / 'site.css').write_text('body {}')
    (root / 'data.json').write_text('{"x": 1}')
    (tmp_path / 'secret.txt').write_text('top secret')
    return root


@pytest.fixture
def client(docroot):
    app = MockServer()
    app.static('/assets', str(docroot))
    app.get('/assets/{rest:path}', lambda req, res: res.status(404).text('fallthrough'))
    return TestClient(app.app)


class TestMountTemplate:
    """Test mount path templates."""

    def test_root_mount(self):
        assert mount_template('/') == '/{static_path:path}'

    def test_nested_mount(self):
        assert mount_template('/assets/') == '/assets/{static_path:path}'


class TestStaticFiles:
    """Test serving files."""

    def test_serves_file(self, client):
        """Test a file is served with its content type."""
        response = client.get('/assets/css/site.css')

        assert response.status_code == 200
        assert response.text == 'body {}'
        assert response.headers['content-type'].startswith('text/css')

    def test_serves_index(self, client):
        """Test the mount root serves index.html."""
        response = client.get('/assets')

        assert response.status_code == 200
        assert '<h1>home</h1>' in response.text

    def test_head(self, client):
        """Test HEAD requests are answered."""
        response = client.head('/assets/data.json')

        assert response.status_code == 200

    def test_missing_file_falls_through(self, client):
        """Test a missing file continues to the next route."""
        response = client.get('/assets/nope.txt')

        assert response.status_code == 404
        assert response.text == 'fallthrough'

    def test_traversal_forbidden(self, docroot):
        """Test paths escaping the directory are refused."""
        files = StaticFiles(docroot)
        req = MockRequest.from_parts('GET', '/../secret.txt')
        req.params = {'static_path': '../secret.txt'}
        res = MockResponse()

        files.handle(req, res, lambda: None)

        assert res.status_code == 403
        assert b'secret' not in res.body

    def test_post_not_served(self, client):
        """Test static mounts only answer GET and HEAD."""
        response = client.post('/assets/data.json')

        assert response.status_code == 404

    def test_missing_directory(self, tmp_path):
        """Test mounting a missing directory fails at registration."""
        with pytest.raises(NotADirectoryError):
            MockServer().static('/x', str(tmp_path / 'absent'))
