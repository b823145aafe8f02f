"""Print a fresh TENANT_ENCRYPTION_KEY (64 hex characters)."""
from shopbot.core.crypto import generate_encryption_key


if __name__ == "__main__":
    print(generate_encryption_key())
