"""ABOUTME: Unit tests for backup code generation and single-use consumption
ABOUTME: Tests code format, uniqueness within a batch and case-insensitive matching"""

import re

from v2backoffice.domain.two_factor import generate_backup_codes, verify_backup_code


class TestGenerateBackupCodes:
    def test_default_count_and_format(self):
        codes = generate_backup_codes()

        assert len(codes) == 10
        assert all(re.fullmatch(r"[0-9A-F]{8}", code) for code in codes)

    def test_custom_count(self):
        assert len(generate_backup_codes(3)) == 3

    def test_codes_in_a_batch_are_distinct(self):
        codes = generate_backup_codes(50)

        assert len(set(codes)) == 50


class TestVerifyBackupCode:
    def test_code_is_single_use(self):
        codes = ["AAAA1111", "BBBB2222", "CCCC3333"]

        assert verify_backup_code(codes, "BBBB2222") is True
        assert len(codes) == 2
        assert verify_backup_code(codes, "BBBB2222") is False
        assert codes == ["AAAA1111", "CCCC3333"]

    def test_match_is_case_insensitive(self):
        codes = ["ABCD1234"]

        assert verify_backup_code(codes, " abcd1234 ") is True
        assert codes == []

    def test_no_match_leaves_codes_alone(self):
        codes = ["ABCD1234"]

        assert verify_backup_code(codes, "FFFF0000") is False
        assert verify_backup_code(codes, "") is False
        assert codes == ["ABCD1234"]
