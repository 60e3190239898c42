import base64
import hashlib
import hmac


class Tokenizer:
    """Turns a site-internal user id into a pseudonymous, irreversible user_token."""

    def __init__(self, secret: str, prefix: str = "pcf_", length: int = 32):
        if not secret:
            raise ValueError("PCF tokenizer: secret is required")
        self._secret = secret.encode("utf-8")
        self.prefix = prefix
        self.length = length

    def tokenize(self, user_id) -> str:
        digest = hmac.new(self._secret, str(user_id).encode("utf-8"), hashlib.sha256).digest()
        encoded = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        return self.prefix + encoded[: self.length]


def create_tokenizer(secret: str, prefix: str = "pcf_") -> Tokenizer:
    return Tokenizer(secret, prefix=prefix)
