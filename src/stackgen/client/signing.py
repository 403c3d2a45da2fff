"""Canonical query construction and HMAC request signing.

The management API authenticates every call by recomputing a signature over
the request parameters, so the client must reproduce the server's
canonicalisation exactly:

1. Coerce every value to a string (``bool`` -> ``"true"``/``"false"``,
   numbers -> decimal) and drop parameters whose value is ``""``.
2. Add ``apikey``, ``command`` and ``response=json``.
3. Lower-case every key and sort.
4. Percent-encode keys and values per RFC 3986 (space is ``%20``, never
   ``+``) and join with ``&``.
5. HMAC-SHA1 the lower-cased canonical query with the secret key,
   base64-encode the digest, then percent-encode it.
6. Append ``signature=<value>``. The signature is not part of the signed
   payload.

Example::

    signer = RequestSigner("key", "secret", Endpoint.from_url("http://cloud:8080"))
    signed = signer.build("listZones", {"available": True})
    signed.url  # http://cloud:8080/client/api?apikey=key&available=true&...
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any, Mapping, Optional
from urllib.parse import quote

from stackgen.exceptions import InvalidParameterType
from stackgen.models import Endpoint, SignedQuery


def coerce_value(key: str, value: Any) -> str:
    """Return the canonical string form of a parameter value.

    Raises:
        InvalidParameterType: If *value* is not a bool, int, float, or str.
    """
    # bool is a subclass of int, so it must be tested first.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise InvalidParameterType(key, value)


def encode_component(text: str) -> str:
    """Percent-encode *text* leaving only RFC 3986 unreserved characters bare."""
    return quote(text, safe="")


def canonical_query(command: str, params: Mapping[str, Any], api_key: str) -> str:
    """Build the sorted, encoded, unsigned query string for *command*.

    Caller keys are lower-cased; when two keys differ only in case the later
    one wins. Parameters whose coerced value is empty are dropped. The fixed
    ``apikey``, ``command`` and ``response`` parameters take precedence over
    caller parameters of the same name.
    """
    merged: dict[str, str] = {}
    for key, value in params.items():
        coerced = coerce_value(key, value)
        if coerced == "":
            continue
        merged[key.lower()] = coerced

    merged["apikey"] = api_key
    merged["command"] = command
    merged["response"] = "json"

    ordered = sorted(merged.items())
    return "&".join(
        f"{encode_component(key)}={encode_component(value)}" for key, value in ordered
    )


def sign(canonical: str, secret_key: str) -> str:
    """Return the percent-encoded signature for a canonical query string."""
    digest = hmac.new(
        secret_key.encode("utf-8"),
        canonical.lower().encode("utf-8"),
        hashlib.sha1,
    ).digest()
    return encode_component(base64.b64encode(digest).decode("ascii"))


class RequestSigner:
    """Builds signed queries for one endpoint and key pair.

    Args:
        api_key: The account's API key (sent as ``apikey``).
        secret_key: The shared secret used as the HMAC key.
        endpoint: Where signed queries will be sent.
    """

    def __init__(self, api_key: str, secret_key: str, endpoint: Endpoint) -> None:
        self._api_key = api_key
        self._secret_key = secret_key
        self._endpoint = endpoint

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def build(
        self, command: str, params: Optional[Mapping[str, Any]] = None
    ) -> SignedQuery:
        """Build the canonical query for *command* and sign it.

        Args:
            command: The remote command name, e.g. ``listApis``.
            params: Flat map of parameter values.

        Returns:
            A :class:`~stackgen.models.SignedQuery`.

        Raises:
            InvalidParameterType: If a parameter value has an unsupported type.
        """
        canonical = canonical_query(command, params or {}, self._api_key)
        signature = sign(canonical, self._secret_key)
        return SignedQuery(
            command=command,
            canonical=canonical,
            signature=signature,
            query=f"{canonical}&signature={signature}",
            base_url=self._endpoint.base_url,
        )


def build_signed_query(
    command: str,
    params: Mapping[str, Any],
    api_key: str,
    secret_key: str,
    endpoint: Endpoint,
) -> SignedQuery:
    """Convenience wrapper around :meth:`RequestSigner.build`."""
    return RequestSigner(api_key, secret_key, endpoint).build(command, params)
