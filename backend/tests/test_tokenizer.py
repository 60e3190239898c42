import pytest

from pcf.services.tokenizer import Tokenizer, create_tokenizer


def test_token_shape():
    token = create_tokenizer("site-secret").tokenize("alice")
    assert token.startswith("pcf_")
    assert len(token) == len("pcf_") + 32
    assert "=" not in token


def test_deterministic_per_secret():
    a = Tokenizer("site-secret")
    b = Tokenizer("site-secret")
    other = Tokenizer("another-secret")
    assert a.tokenize("alice") == b.tokenize("alice")
    assert a.tokenize("alice") != a.tokenize("bob")
    assert a.tokenize("alice") != other.tokenize("alice")


def test_numeric_ids_match_their_string_form():
    tokenizer = Tokenizer("site-secret")
    assert tokenizer.tokenize(42) == tokenizer.tokenize("42")


def test_custom_prefix():
    assert create_tokenizer("site-secret", prefix="shop_").tokenize("alice").startswith("shop_")


def test_secret_required():
    with pytest.raises(ValueError, match="secret is required"):
        Tokenizer("")
