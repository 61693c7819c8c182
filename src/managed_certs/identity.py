"""Identity of a ManagedCertificate / SslCertificate pairing."""

from __future__ import annotations

from dataclasses import dataclass

ID_SEPARATOR = ":"


@dataclass(frozen=True, order=True)
class CertId:
    """Namespace and name of a ManagedCertificate.

    Used as the only lookup key into state, the certificate manager and the
    declarative store.
    """

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}{ID_SEPARATOR}{self.name}"

    @classmethod
    def parse(cls, value: str) -> CertId:
        """Parse the ``namespace:name`` form produced by ``str()``."""
        namespace, sep, name = value.partition(ID_SEPARATOR)
        if not sep or not namespace or not name:
            raise ValueError(f"Invalid ManagedCertificate id: {value!r}")
        return cls(namespace=namespace, name=name)
