"""pytest fixtures for testing."""

import ipaddress

import dns.message
import dns.rdatatype
import pytest

from resolver import Request, Resolver, Response, ResponseType


class RecordingResolver(Resolver):
    """Successor stage double: records every request and returns a canned answer."""

    def __init__(self, error=None):
        super().__init__()
        self.calls = []
        self.error = error

    async def resolve(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return Response(dns.message.make_response(request.message), ResponseType.RESOLVED, "RESOLVED (stub)")

    def configuration(self):
        return ["stub"]


@pytest.fixture
def next_resolver():
    return RecordingResolver()


@pytest.fixture
def list_file(tmp_path):
    """Write list entries to a temp file and return its path."""
    counter = {'n': 0}

    def _write(*lines):
        counter['n'] += 1
        path = tmp_path / f"list{counter['n']}.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_request():
    def _make(qname, qtype="A", client_names=("unknown",), client_ip="192.168.178.1"):
        message = dns.message.make_query(qname, dns.rdatatype.from_text(qtype))
        ip = ipaddress.ip_address(client_ip) if client_ip else None
        return Request(message=message, client_names=tuple(client_names), client_ip=ip)

    return _make
