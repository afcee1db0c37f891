"""Tests for lobby code generation, normalization and validation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import code_bytes
from utils.lobby_code import (
    ALPHABET,
    CODE_LENGTH,
    CodeExhaustedError,
    generate_lobby_code,
    generate_unique_lobby_code,
    normalize_lobby_code,
    validate_lobby_code,
)


class TestAlphabet:
    """Tests for the code alphabet."""

    def test_alphabet_has_31_symbols(self):
        assert len(ALPHABET) == 31
        assert len(set(ALPHABET)) == 31

    def test_alphabet_excludes_ambiguous_characters(self):
        """0/O and 1/I/L are never issued."""
        for ch in "0O1IL":
            assert ch not in ALPHABET


class TestGenerateLobbyCode:
    """Tests for generate_lobby_code()."""

    def test_code_shape(self):
        """Generated codes are 6 characters from the alphabet."""
        for _ in range(200):
            code = generate_lobby_code()
            assert len(code) == CODE_LENGTH
            assert all(ch in ALPHABET for ch in code)
            assert validate_lobby_code(code)

    def test_codes_are_spread_out(self):
        """100 draws from a 31^6 space are almost all distinct."""
        codes = {generate_lobby_code() for _ in range(100)}
        assert len(codes) >= 96

    def test_bytes_map_through_modulo(self):
        """Each random byte selects ALPHABET[byte % 31]."""
        assert generate_lobby_code(lambda n: bytes([0, 1, 2, 3, 4, 5])) == "234567"
        assert generate_lobby_code(lambda n: bytes([31, 32, 62, 255, 30, 61])) == "2329ZZ"

    def test_uses_random_source_once(self):
        """A single draw is enough for a valid code."""
        source = MagicMock(return_value=bytes(6))
        generate_lobby_code(source)
        source.assert_called_once_with(CODE_LENGTH)


class TestGenerateUniqueLobbyCode:
    """Tests for generate_unique_lobby_code()."""

    @pytest.mark.asyncio
    async def test_free_code_checks_exactly_once(self):
        """When no code exists, the predicate is called once."""
        exists = MagicMock(return_value=False)
        code = await generate_unique_lobby_code(exists)
        exists.assert_called_once_with(code)

    @pytest.mark.asyncio
    async def test_async_predicate_is_awaited(self):
        exists = AsyncMock(return_value=False)
        code = await generate_unique_lobby_code(exists)
        exists.assert_awaited_once_with(code)

    @pytest.mark.asyncio
    async def test_retries_until_free(self):
        """Collisions are skipped; the first free code is returned."""
        exists = MagicMock(side_effect=[True, True, False])
        code = await generate_unique_lobby_code(
            exists, random_bytes=code_bytes("AAAAAA", "BBBBBB", "CCCCCC")
        )
        assert code == "CCCCCC"
        assert [c.args[0] for c in exists.call_args_list] == ["AAAAAA", "BBBBBB", "CCCCCC"]

    @pytest.mark.asyncio
    async def test_exhaustion_after_exactly_max_retries(self):
        """An always-taken predicate raises after exactly 10 calls."""
        exists = MagicMock(return_value=True)
        with pytest.raises(CodeExhaustedError, match="after 10 attempts") as excinfo:
            await generate_unique_lobby_code(exists)
        assert exists.call_count == 10
        assert excinfo.value.attempts == 10

    @pytest.mark.asyncio
    async def test_custom_retry_ceiling(self):
        exists = AsyncMock(return_value=True)
        with pytest.raises(CodeExhaustedError):
            await generate_unique_lobby_code(exists, max_retries=3)
        assert exists.await_count == 3

    @pytest.mark.asyncio
    async def test_predicate_errors_propagate(self):
        """A failing existence check is not mistaken for a free code."""
        exists = AsyncMock(side_effect=RuntimeError("backend down"))
        with pytest.raises(RuntimeError, match="backend down"):
            await generate_unique_lobby_code(exists)


class TestNormalizeLobbyCode:
    """Tests for normalize_lobby_code()."""

    def test_trims_and_uppercases(self):
        assert normalize_lobby_code("  abc123 ") == "ABC123"

    def test_none_becomes_empty(self):
        assert normalize_lobby_code(None) == ""

    def test_already_normal(self):
        assert normalize_lobby_code("XYZ789") == "XYZ789"


class TestValidateLobbyCode:
    """Tests for validate_lobby_code()."""

    @pytest.mark.parametrize("code", ["ABC123", "ZZZZZZ", "000000", "ABC0O1"])
    def test_valid(self, code):
        """Any 6 uppercase letters or digits are accepted, ambiguous ones included."""
        assert validate_lobby_code(code) is True

    @pytest.mark.parametrize(
        "code",
        ["abc123", "ABC12", "ABC1234", "ABC-12", "ABC 12", "", "ABC123\n"],
    )
    def test_invalid(self, code):
        assert validate_lobby_code(code) is False

    @pytest.mark.parametrize("code", [None, 123456, ["ABC123"]])
    def test_non_string_is_invalid(self, code):
        assert validate_lobby_code(code) is False
