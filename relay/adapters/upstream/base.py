from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True)
class UpstreamResponse:
	"""Fully read upstream response."""

	status_code: int
	reason: str
	headers: Mapping[str, str] = field(default_factory=dict)
	body: bytes = b""

	@property
	def is_success(self) -> bool:
		return 200 <= self.status_code < 300

	@property
	def content_type(self) -> str | None:
		for name, value in self.headers.items():
			if name.lower() == "content-type":
				return value or None
		return None


class AbstractUpstreamTransport(ABC):
	"""Interface for HTTP clients that contact the upstream API."""

	@abstractmethod
	async def fetch(
		self,
		url: str,
		*,
		method: str = "GET",
		headers: Mapping[str, str] | None = None,
	) -> UpstreamResponse:
		"""Perform one upstream request and read the whole body.

		Args:
			url: Fully qualified upstream URL.
			method: HTTP method.
			headers: Request headers (relay-owned only, never caller credentials).

		Returns:
			UpstreamResponse, whatever its status code.

		Raises:
			TransportAppError: If the upstream could not be reached.
		"""
		...

	async def close(self) -> None:
		"""Release pooled connections."""
		return None
