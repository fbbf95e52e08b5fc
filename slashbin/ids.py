import secrets

ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

class IdGenerator:
    def __init__(self, length: int = 4):
        if length < 1:
            raise ValueError("id length must be positive")
        self.length = length

    def next(self, length: int | None = None) -> str:
        n = length or self.length
        return "".join(secrets.choice(ALPHABET) for _ in range(n))

def is_valid_id(value: str | None) -> bool:
    return bool(value) and all(c in ALPHABET for c in value)
