import pytest

from kb_retrieval.retrieval.language import detect_language


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("こんにちは、返金について", "ja"),
        ("환불 정책이 뭐예요", "ko"),
        ("退款政策是什么", "zh"),
        ("นโยบายการคืนเงิน", "th"),
        ("रिफंड नीति क्या है", "hi"),
        ("ما هي سياسة الاسترداد", "ar"),
        ("какая политика возврата", "ru"),
        ("mujhe refund chahiye", "hi"),
        ("what is the refund policy", "en"),
        ("hola", "en"),
    ],
)
def test_detect_language_from_script_and_markers(text: str, expected: str) -> None:
    assert detect_language(text) == expected


def test_devanagari_hint_selects_marathi() -> None:
    assert detect_language("परतावा धोरण काय आहे", hint="mr") == "mr"
    assert detect_language("परतावा धोरण काय आहे", hint="fr") == "hi"


def test_hint_applies_to_unmarked_latin_text() -> None:
    assert detect_language("politica de reembolso", hint="es") == "es"
    assert detect_language("politica de reembolso", hint="Spanish") == "en"


def test_script_wins_over_hint() -> None:
    assert detect_language("退款政策", hint="en") == "zh"


def test_inconclusive_input_is_unknown() -> None:
    assert detect_language("") == "unknown"
    assert detect_language("   ") == "unknown"
    assert detect_language(None) == "unknown"
    assert detect_language("política de devolución más rápida") == "unknown"
