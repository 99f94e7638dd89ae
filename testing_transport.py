"""requests transport that routes remote store calls into a Flask test client."""

from urllib.parse import urlsplit

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

TEST_BASE_URL = 'http://store.test'


class FlaskTestAdapter(BaseAdapter):
    """Answers requests with the Flask app's test client (no sockets)."""

    def __init__(self, app):
        super().__init__()
        self.client = app.test_client()
        self.calls = []

    def send(self, request, stream=False, timeout=None, verify=True,
             cert=None, proxies=None):
        parts = urlsplit(request.url)
        path = parts.path + (f'?{parts.query}' if parts.query else '')
        self.calls.append((request.method, path))

        result = self.client.open(path,
                                  method=request.method,
                                  data=request.body,
                                  content_type=request.headers.get('Content-Type'))

        response = requests.Response()
        response.status_code = result.status_code
        response.reason = result.status.split(' ', 1)[-1]
        response.headers = CaseInsensitiveDict(dict(result.headers))
        response._content = result.get_data()
        response.encoding = 'utf-8'
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def remote_session(app, base_url: str = TEST_BASE_URL):
    """Get a requests session (and its adapter) wired to the given app."""

    session = requests.Session()
    adapter = FlaskTestAdapter(app)
    session.mount(base_url, adapter)
    return session, adapter
