"""ABOUTME: Backup code rules for the two-factor credential owned by each user
ABOUTME: Generates single-use uppercase hex codes and consumes them on a case-insensitive match"""

import secrets

BACKUP_CODE_BYTES = 4
DEFAULT_BACKUP_CODE_COUNT = 10


def generate_backup_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> list[str]:
    """Generate `count` distinct backup codes, each 8 uppercase hex characters.

    Duplicates within one batch are drawn again, so a user never holds
    two copies of the same code.
    """
    codes: list[str] = []
    while len(codes) < count:
        code = secrets.token_bytes(BACKUP_CODE_BYTES).hex().upper()
        if code not in codes:
            codes.append(code)
    return codes


def verify_backup_code(codes: list[str], candidate: str) -> bool:
    """Consume `candidate` from `codes` if present.

    The list is modified in place: on a match the code is removed and True is
    returned, otherwise the list is left alone and False is returned.
    """
    normalised = candidate.strip().upper()
    if not normalised:
        return False
    for index, code in enumerate(codes):
        if secrets.compare_digest(code.encode(), normalised.encode()):
            del codes[index]
            return True
    return False
