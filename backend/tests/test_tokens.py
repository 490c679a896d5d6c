import pytest

from adminsync.config import Settings
from adminsync.errors import TOKEN_MISSING_MESSAGE, TokenMissingError
from adminsync.sync.tokens import FileTokenProvider, StaticTokenProvider, token_provider_from_settings


def test_static_provider():
    provider = StaticTokenProvider("abc")
    assert provider.get_token() == "abc"
    provider.set_token(None)
    with pytest.raises(TokenMissingError) as exc:
        provider.get_token()
    assert exc.value.message == TOKEN_MISSING_MESSAGE


def test_file_provider_rereads_file(tmp_path):
    path = tmp_path / "token"
    path.write_text("first\n")
    provider = FileTokenProvider(str(path))
    assert provider.get_token() == "first"
    path.write_text("second")
    assert provider.get_token() == "second"


def test_file_provider_missing_or_empty(tmp_path):
    with pytest.raises(TokenMissingError):
        FileTokenProvider(str(tmp_path / "absent")).get_token()
    empty = tmp_path / "empty"
    empty.write_text("  \n")
    with pytest.raises(TokenMissingError):
        FileTokenProvider(str(empty)).get_token()


def test_provider_from_settings_prefers_file(tmp_path):
    path = tmp_path / "token"
    path.write_text("from-file")
    settings = Settings(access_token="inline", access_token_file=str(path), _env_file=None)
    assert token_provider_from_settings(settings).get_token() == "from-file"
    assert token_provider_from_settings(Settings(access_token="inline", _env_file=None)).get_token() == "inline"
