import re

import pytest

from courseclaim.core.exceptions import ConfigurationError
from courseclaim.services.access_codes import ACCESS_CODE_ALPHABET, AccessCodeGenerator

CODE_PATTERN = re.compile(r"^AC-\d+-[0-9A-Z]{4}$")


def test_generated_code_has_prefix_timestamp_and_suffix() -> None:
    generator = AccessCodeGenerator(clock=lambda: 1700000000.5)

    code = generator.generate()

    assert CODE_PATTERN.match(code)
    assert code.split("-")[1] == "1700000000500"


def test_suffix_uses_injected_choice() -> None:
    generator = AccessCodeGenerator(prefix="cc", suffix_length=6, clock=lambda: 1.0,
                                    choice=lambda alphabet: alphabet[-1])

    assert generator.generate() == "CC-1000-ZZZZZZ"


def test_suffix_only_uses_uppercase_alphanumerics() -> None:
    generator = AccessCodeGenerator()
    for _ in range(50):
        suffix = generator.generate().rsplit("-", 1)[1]
        assert all(ch in ACCESS_CODE_ALPHABET for ch in suffix)


@pytest.mark.parametrize("kwargs", [{"prefix": ""}, {"prefix": "A-C"}, {"suffix_length": 0}])
def test_invalid_generator_settings(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        AccessCodeGenerator(**kwargs)
