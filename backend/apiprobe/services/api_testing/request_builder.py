"""Merges endpoint defaults and test overrides into one concrete request."""

import re
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode

from apiprobe.schemas.api_test import APITestDefinition
from apiprobe.schemas.endpoint import EndpointDefinition, KeyValue
from apiprobe.services.api_testing.json_value import JsonValue


@dataclass(frozen=True)
class ConcreteRequest:
    """A fully resolved outbound request."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: JsonValue = None


class RequestBuilder:
    """
    Builds requests from an endpoint template and a test.

    Precedence (highest first): test override, endpoint default, absent.
    - Headers merge by key, case-insensitively
    - Query params merge by key; those matching a {param} placeholder in the
      path are substituted there, the rest go into the query string
    - The test body replaces the endpoint body as a whole
    """

    PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")

    def build(
        self,
        endpoint: EndpointDefinition,
        test: APITestDefinition,
        base_url: str,
    ) -> ConcreteRequest:
        headers = self._merge_headers(endpoint.headers, test.request_headers)
        params = self._merge(endpoint.query_params, test.request_params)

        path, used = self._substitute_path(endpoint.path, params)
        remaining = [(key, value) for key, value in params.items() if key not in used]

        url = self._build_url(base_url, path, remaining)
        body = test.request_body if test.request_body is not None else endpoint.request_body

        return ConcreteRequest(
            method=endpoint.method.upper(),
            url=url,
            headers=headers,
            body=body,
        )

    def _merge(self, defaults: list[KeyValue], overrides: list[KeyValue]) -> dict[str, str]:
        merged: dict[str, str] = {}
        for entry in [*defaults, *overrides]:
            if entry.key:
                merged[entry.key] = entry.value
        return merged

    def _merge_headers(self, defaults: list[KeyValue], overrides: list[KeyValue]) -> dict[str, str]:
        """Merge by lowercased key, keeping the spelling of the winning entry."""
        merged: dict[str, tuple[str, str]] = {}
        for entry in [*defaults, *overrides]:
            if entry.key:
                merged[entry.key.lower()] = (entry.key, entry.value)
        return dict(merged.values())

    def _substitute_path(self, template: str, params: dict[str, str]) -> tuple[str, set[str]]:
        """Fill {param} placeholders; unmatched ones stay as literal text."""
        used: set[str] = set()

        def replacer(match: re.Match) -> str:
            name = match.group(1).strip()
            if name not in params:
                return match.group(0)
            used.add(name)
            return quote(params[name], safe="")

        return self.PLACEHOLDER_PATTERN.sub(replacer, template), used

    def _build_url(self, base_url: str, path: str, query: list[tuple[str, str]]) -> str:
        # If path is already absolute, base_url does not apply
        if path.startswith(("http://", "https://")):
            url = path
        elif base_url and path:
            url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
        else:
            url = base_url or path

        if query:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(query)}"

        return url
