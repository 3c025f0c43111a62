"""
Tests for LoadMock Mock Server

Tests the FastAPI-based mock server including:
- Route and middleware registration
- Request handling through the pipeline
- Error responses (404, 400, 500)
- Metrics
- Listener lifecycle (start, listen, stop)
"""

import json
import socket
import threading
import time

import pytest
import requests
from fastapi.testclient import TestClient

from loadmock import MockConfig, MockMetrics, MockServer, Application
from loadmock.errors import BindError, InvalidArgument, ServerNotRunning


class TestMockMetrics:
    """Test MockMetrics dataclass."""

    def test_metrics_initialization(self):
        """Test initializing metrics."""
        metrics = MockMetrics()

        assert metrics.total_requests == 0
        assert metrics.matched_requests == 0
        assert metrics.failed_requests == 0

    def test_metrics_to_dict(self):
        """Test converting metrics to dictionary."""
        metrics = MockMetrics(total_requests=100, matched_requests=90, unmatched_requests=10)

        data = metrics.to_dict()

        assert data['total_requests'] == 100
        assert data['match_rate'] == 90.0
        assert 'uptime_seconds' in data


class TestMockServerInit:
    """Test MockServer construction."""

    def test_defaults(self):
        """Test default options."""
        server = MockServer()

        assert server.sync is False
        assert server.running is False
        assert server.host == ''
        assert server.address is None

    def test_options_dict(self):
        """Test sync flag from an options dict."""
        assert MockServer({'sync': True}).sync is True

    def test_application_alias(self):
        """Test Application is the same class."""
        assert Application is MockServer

    def test_get_app(self):
        """Test getting FastAPI app instance."""
        app = MockServer().get_app()

        assert hasattr(app, 'routes')

    def test_registration_returns_self(self):
        """Test method-named registration chains."""
        server = MockServer()
        handler = lambda req, res: res.text('x')

        assert server.get('/a', handler).post('/a', handler).use(handler) is server
        assert len(server.router) == 3


class TestRequestHandling:
    """Test requests served in-process."""

    def test_route_params(self):
        """Test route parameters reach the handler."""
        server = MockServer()
        server.get('/user/{id}', lambda req, res: res.json({'id': req.params['id']}))

        response = TestClient(server.app).get('/user/42')

        assert response.status_code == 200
        assert response.json() == {'id': '42'}

    def test_query_headers_and_body(self):
        """Test the request object carries query, headers and JSON body."""
        def echo(req, res):
            res.json({
                'query': req.query,
                'token': req.get('x-token'),
                'body': req.body,
                'method': req.method,
            })

        server = MockServer()
        server.post('/echo', echo)

        response = TestClient(server.app).post(
            '/echo?tag=a&tag=b&q=1',
            headers={'X-Token': 'abc'},
            json={'name': 'Jane'}
        )

        assert response.json() == {
            'query': {'tag': ['a', 'b'], 'q': '1'},
            'token': 'abc',
            'body': {'name': 'Jane'},
            'method': 'POST',
        }

    def test_unmatched_is_404(self):
        """Test requests with no route get the default 404."""
        server = MockServer()
        server.get('/known', lambda req, res: res.text('ok'))

        response = TestClient(server.app).get('/unknown')

        assert response.status_code == 404
        assert 'error' in response.json()
        assert server.metrics.unmatched_requests == 1

    def test_status_only_response(self):
        """Test status() alone gives an empty body."""
        server = MockServer()
        server.get('/gone', lambda req, res: res.status(404))

        response = TestClient(server.app).get('/gone')

        assert response.status_code == 404
        assert response.content == b''

    def test_headers_and_multi_values(self):
        """Test response headers, including repeated ones."""
        def handler(req, res):
            res.set('X-Id', '7').append('Set-Cookie', 'a=1').append('Set-Cookie', 'b=2').text('ok')

        server = MockServer()
        server.get('/h', handler)

        response = TestClient(server.app).get('/h')

        assert response.headers['x-id'] == '7'
        assert response.headers.get_list('set-cookie') == ['a=1', 'b=2']

    def test_handler_exception_is_500(self):
        """Test a raising handler yields a 500 and the server keeps serving."""
        def explode(req, res):
            raise RuntimeError('boom')

        server = MockServer()
        server.get('/explode', explode)
        server.get('/fine', lambda req, res: res.text('fine'))
        client = TestClient(server.app)

        assert client.get('/explode').status_code == 500
        assert client.get('/fine').text == 'fine'
        assert server.metrics.failed_requests == 1
        assert server.metrics.matched_requests == 1

    def test_malformed_json_is_400(self):
        """Test an unparseable JSON body is rejected before routing."""
        server = MockServer()
        server.post('/items', lambda req, res: res.text('should not run'))

        response = TestClient(server.app).post(
            '/items',
            content=b'{broken',
            headers={'Content-Type': 'application/json'}
        )

        assert response.status_code == 400
        assert server.metrics.failed_requests == 1

    def test_middleware_short_circuit(self):
        """Test middleware can answer without reaching the route."""
        calls = {'route': 0}

        def auth(req, res, next):
            if req.get('Authorization') != 'Bearer ok':
                res.status(401).json({'error': 'unauthorized'})
                return
            next()

        def secret(req, res):
            calls['route'] += 1
            res.text('secret')

        server = MockServer()
        server.use('/admin', auth)
        server.get('/admin/panel', secret)
        client = TestClient(server.app)

        assert client.get('/admin/panel').status_code == 401
        assert calls['route'] == 0

        response = client.get('/admin/panel', headers={'Authorization': 'Bearer ok'})
        assert response.text == 'secret'
        assert calls['route'] == 1

    def test_all_methods(self):
        """Test all() answers every method."""
        server = MockServer()
        server.all('/any', lambda req, res: res.text(req.method))
        client = TestClient(server.app)

        assert client.put('/any').text == 'PUT'
        assert client.delete('/any').text == 'DELETE'

    def test_route_added_later(self):
        """Test routes registered after creation take effect."""
        server = MockServer()
        client = TestClient(server.app)

        assert client.get('/late').status_code == 404

        server.get('/late', lambda req, res: res.text('here'))
        assert client.get('/late').text == 'here'

    def test_sync_mode(self):
        """Test sync servers serve handlers inline."""
        server = MockServer(sync=True)
        server.get('/t', lambda req, res: res.text(threading.current_thread().name))

        response = TestClient(server.app).get('/t')

        assert response.status_code == 200
        assert not response.text.startswith('AnyIO worker thread')

    def test_custom_fallback_config(self):
        """Test fallback status and body come from config."""
        server = MockServer(config=MockConfig(fallback_status=418, fallback_body='{"teapot": true}'))

        response = TestClient(server.app).get('/anything')

        assert response.status_code == 418
        assert response.json() == {'teapot': True}


def _free_port():
    with socket.socket() as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestLifecycle:
    """Test the real listener."""

    def test_start_and_stop(self, server):
        """Test start binds a port and stop frees it."""
        server.get('/ping', lambda req, res: res.text('pong'))

        host, port = server.start()

        assert host == '127.0.0.1'
        assert port > 0
        assert server.running
        assert server.host == f'127.0.0.1:{port}'
        assert requests.get(f'{server.url}/ping').text == 'pong'

        server.stop()

        assert not server.running
        with pytest.raises(requests.ConnectionError):
            requests.get(f'http://127.0.0.1:{port}/ping', timeout=2)

    def test_stop_when_not_running(self, server):
        """Test stop on an idle server raises ServerNotRunning."""
        with pytest.raises(ServerNotRunning):
            server.stop()

    def test_bind_conflict(self, server):
        """Test binding a taken port raises BindError."""
        with socket.socket() as taken:
            taken.bind(('127.0.0.1', 0))
            taken.listen(1)
            port = taken.getsockname()[1]

            with pytest.raises(BindError):
                server.start(port)

        assert not server.running

    def test_start_twice(self, server):
        """Test a running server cannot start again."""
        server.start()

        with pytest.raises(BindError):
            server.start()

    def test_listen_with_callback(self, server):
        """Test listen() parses the address and calls back."""
        port = _free_port()
        called = []

        server.listen(f'127.0.0.1:{port}', lambda: called.append(True))

        assert called == [True]
        assert server.address == ('127.0.0.1', port)

    def test_listen_callback_only(self, server):
        """Test listen(callback) picks a free port."""
        called = []
        server.listen(lambda: called.append(server.host))

        assert called and called[0].startswith('127.0.0.1:')

    def test_listen_bad_address(self, server):
        """Test listen() rejects non-numeric ports."""
        with pytest.raises(InvalidArgument):
            server.listen('localhost:http')

    def test_restart(self, server):
        """Test a stopped server can start again."""
        server.get('/', lambda req, res: res.text('up'))
        server.start()
        server.stop()
        server.start()

        assert requests.get(server.url + '/').text == 'up'

    def test_context_manager(self, config):
        """Test with-statement starts and stops."""
        app = MockServer(config=config)
        app.get('/', lambda req, res: res.json({'ok': True}))

        with app:
            assert requests.get(app.url + '/').json() == {'ok': True}

        assert not app.running

    def test_concurrent_requests(self, server):
        """Test requests are served concurrently on worker threads."""
        barrier = threading.Barrier(2, timeout=5)

        def wait(req, res):
            barrier.wait()
            res.text('released')

        server.get('/wait', wait)
        server.start()

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(requests.get(server.url + '/wait', timeout=10).text))
            for _ in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert results == ['released', 'released']

    def test_metrics_reset_on_start(self, server):
        """Test metrics track served requests."""
        server.get('/m', lambda req, res: res.text('m'))
        server.start()

        requests.get(server.url + '/m')
        requests.get(server.url + '/nope')

        data = server.metrics.to_dict()
        assert data['total_requests'] == 2
        assert data['matched_requests'] == 1
        assert data['unmatched_requests'] == 1


class TestGracefulStop:
    """Test stop() with requests still in flight."""

    def test_in_flight_request_completes(self, server):
        """Test a request being handled when stop() begins still gets its response."""
        def slow(req, res):
            time.sleep(0.4)
            res.text('done')

        server.get('/slow', slow)
        server.start()
        url = server.url + '/slow'

        result = {}
        caller = threading.Thread(target=lambda: result.setdefault('response', requests.get(url, timeout=5)))
        caller.start()
        time.sleep(0.1)

        server.stop()
        caller.join(5)

        assert result['response'].status_code == 200
        assert result['response'].text == 'done'
        assert not server.running

    def test_interception_ends_when_stop_begins(self, server, registry):
        """Test running and resolve flip as soon as stop() is called, before the server drains."""
        entered = threading.Event()
        release = threading.Event()

        def held(req, res):
            entered.set()
            release.wait(5)
            res.text('done')

        server.get('/held', held)
        server.start()
        registry.register('https://api.example.com', server)
        target = 'https://api.example.com/held'
        assert registry.resolve(target) != target

        result = {}
        caller = threading.Thread(target=lambda: result.setdefault('response', requests.get(registry.resolve(target), timeout=5)))
        caller.start()
        assert entered.wait(5)

        stopper = threading.Thread(target=server.stop)
        stopper.start()

        deadline = time.monotonic() + 2
        while server.running and time.monotonic() < deadline:
            time.sleep(0.01)

        try:
            assert not server.running
            assert registry.resolve(target) == target
        finally:
            release.set()
            caller.join(5)
            stopper.join(5)

        assert result['response'].status_code == 200
        assert result['response'].text == 'done'

    def test_grace_period_rounding(self):
        """Test the grace period is applied in whole seconds, never below one."""
        assert MockServer.grace_seconds(0.1) == 1
        assert MockServer.grace_seconds(0.5) == 1
        assert MockServer.grace_seconds(2.4) == 2
        assert MockServer.grace_seconds(2.6) == 3


class TestEncodedPaths:
    """Test matching runs on the percent-decoded path."""

    def test_encoded_slash_does_not_match_segment(self):
        """Test '%2F' decodes to a separator and no longer fits a single segment."""
        server = MockServer()
        server.get('/user/{id}', lambda req, res: res.json({'id': req.params['id']}))

        client = TestClient(server.app)

        assert client.get('/user/a%2Fb').status_code == 404
        assert client.get('/user/a%20b').json() == {'id': 'a b'}

    def test_encoded_slash_reaches_path_parameter(self):
        """Test a path parameter receives the decoded remainder."""
        server = MockServer()
        server.get('/files/{rest:path}', lambda req, res: res.text(req.params['rest']))

        response = TestClient(server.app).get('/files/a%2Fb')

        assert response.status_code == 200
        assert response.text == 'a/b'
