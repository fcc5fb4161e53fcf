"""Connection secret encryption interface."""

from abc import ABC, abstractmethod


class SecretCipher(ABC):
    """Symmetric protection for stored connection strings."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str: ...

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str: ...


class PassthroughCipher(SecretCipher):
    """Stores secrets as given. For development and tests only."""

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext
