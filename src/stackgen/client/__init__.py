"""Signed request protocol and HTTP transport.

Sub-modules:

* :mod:`~stackgen.client.signing` -- canonical query construction and
  HMAC-SHA1 signing.
* :mod:`~stackgen.client.transport` -- single-attempt blocking POST with
  typed failure mapping.
* :mod:`~stackgen.client.api` -- :class:`ApiClient` combining the two.
"""

from stackgen.client.api import ApiClient
from stackgen.client.signing import RequestSigner, build_signed_query
from stackgen.client.transport import Transport

__all__ = ["ApiClient", "RequestSigner", "Transport", "build_signed_query"]
