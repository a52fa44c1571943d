# python
import os

# Settings are read once per process; pin them before clinic is imported.
os.environ.setdefault("ENCRYPTION_SECRET", "s3cr3t")
os.environ.setdefault("JWT_SIGNING_KEY", "test-signing-key-0123456789abcdef")
os.environ.setdefault("JWT_AUDIENCE", "psyclinic")

import pytest

from clinic.crypto import FieldCipher


@pytest.fixture
def cipher():
    return FieldCipher("s3cr3t")
