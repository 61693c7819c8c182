"""Generation of SslCertificate names."""

from __future__ import annotations

import uuid

from .config import SSL_CERTIFICATE_NAME_PREFIX


class NameGenerator:
    """Produces collision-resistant certificate names such as ``mcrt-<uuid4>``."""

    def __init__(self, prefix: str = SSL_CERTIFICATE_NAME_PREFIX) -> None:
        self._prefix = prefix

    def name(self) -> str:
        return f"{self._prefix}-{uuid.uuid4()}"
