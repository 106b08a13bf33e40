"""
Test doubles for the HTTP layer and the remote adapter.
"""


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else str(body))

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for requests.Session; replays queued responses or raises."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeAdapter:
    """Records request bodies and returns a fixed outcome."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.bodies = []

    def analyze(self, body):
        self.bodies.append(body)
        return self.outcome
