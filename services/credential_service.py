import secrets
from dataclasses import dataclass

from flask import current_app


@dataclass(frozen=True)
class CredentialPair:
    verification_code: str
    random_code: str

    def to_dict(self):
        return {
            "verification_code": self.verification_code,
            "random_code": self.random_code,
        }


class CredentialGenerator:
    """Issues the secret verification code and the public random code.

    The secret is hex (easy to read out and type); the random code is
    URL-safe base64 because it is embedded in ``/verify/<random_code>``.
    Uniqueness of the random code is enforced by the database, not here.
    """

    def __init__(self, secret_bytes=6, token_bytes=6, secret_factory=None, token_factory=None):
        self.secret_bytes = int(secret_bytes)
        self.token_bytes = int(token_bytes)
        self._secret_factory = secret_factory or secrets.token_hex
        self._token_factory = token_factory or secrets.token_urlsafe

    @classmethod
    def from_config(cls, config=None):
        config = config if config is not None else current_app.config
        return cls(
            secret_bytes=config.get("VERIFICATION_CODE_BYTES", 6),
            token_bytes=config.get("RANDOM_CODE_BYTES", 6),
        )

    def generate(self) -> CredentialPair:
        return CredentialPair(
            verification_code=self._secret_factory(self.secret_bytes),
            random_code=self._token_factory(self.token_bytes),
        )
