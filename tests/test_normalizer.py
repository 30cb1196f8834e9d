from __future__ import annotations

import allure
import pytest

from agent_timebox.runtime.models import StructuredResponse
from agent_timebox.runtime.normalizer import ResponseNormalizer

pytestmark = [
    allure.epic("Backend Runtime"),
    allure.feature("Response Normalization"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", ""),
        ("   \n", ""),
        ("plain answer\n", "plain answer"),
        ("Loaded cached credentials.\nHello there", "Hello there"),
        ("LOADED CACHED CREDENTIALS.   Hello", "Hello"),
        ('{"result": "ok"}', "ok"),
        ('{"response": "from response"}', "from response"),
        ('{"result": "", "response": "second"}', "second"),
        ('{"other": 1}', '{"other": 1}'),
        ('{"result": "ok"', '{"result": "ok"'),
        ("[1, 2, 3]", "[1, 2, 3]"),
        ('{"result": ' + "1" * 5000 + "}", '{"result": ' + "1" * 5000 + "}"),
        ('Loaded cached credentials.\n{"result": "after noise"}', "after noise"),
    ],
)
def test_normalize_returns_text_for_all_input_shapes(raw: str, expected: str) -> None:
    assert ResponseNormalizer().normalize(raw) == expected


def test_normalize_strips_only_one_noise_line() -> None:
    raw = "Loaded cached credentials.\nLoaded cached credentials.\nbody"

    assert ResponseNormalizer().normalize(raw) == "Loaded cached credentials.\nbody"


def test_normalize_keeps_noise_text_that_is_not_a_prefix() -> None:
    raw = "answer: Loaded cached credentials."

    assert ResponseNormalizer().normalize(raw) == raw


def test_normalize_returns_structured_value_for_non_text_result() -> None:
    raw = '{"result": {"steps": ["open", "click"]}}'

    normalized = ResponseNormalizer().normalize(raw)

    assert normalized == StructuredResponse(result={"steps": ["open", "click"]}, raw=raw)


def test_normalize_tolerates_none_and_deeply_nested_json() -> None:
    normalizer = ResponseNormalizer()
    deep = "{" + '"a":[' * 50_000

    assert normalizer.normalize(None) == ""
    assert normalizer.normalize(deep) == deep


def test_normalize_uses_custom_noise_prefixes() -> None:
    normalizer = ResponseNormalizer(noise_prefixes=("Warming up...",))

    assert normalizer.normalize("warming up... done") == "done"
