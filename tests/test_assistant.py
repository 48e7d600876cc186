import pytest

import assistant
from ai_json import AIResponseFormatError
from llm import LLMError


def test_explain_code_returns_commented_code(fake_llm):
    fake_llm.queue('```json\n{"explainedCode": "# Affiche un message\\nprint(\\"hi\\")"}\n```')
    explained = assistant.explain_code('print("hi")')
    assert explained == '# Affiche un message\nprint("hi")'
    assert 'print("hi")' in fake_llm.last_prompt


def test_explain_code_invalid_json(fake_llm):
    fake_llm.queue("Désolé, je ne peux pas.")
    with pytest.raises(AIResponseFormatError, match="format JSON invalide"):
        assistant.explain_code("print(1)")


def test_explain_code_missing_field(fake_llm):
    fake_llm.queue('{"comment": "x"}')
    with pytest.raises(AIResponseFormatError):
        assistant.explain_code("print(1)")


def test_debug_code_strips_thinking(fake_llm):
    fake_llm.queue("<think>internal</think>\nRegarde la ligne 2 : que vaut b ?")
    suggestions = assistant.debug_code("a = 1\nprint(a / 0)", "", "ZeroDivisionError: division by zero")
    assert suggestions == "Regarde la ligne 2 : que vaut b ?"
    assert "ZeroDivisionError" in fake_llm.last_prompt


def test_pick_errors():
    assert assistant.pick_errors("log", "NameError") == "NameError"
    assert assistant.pick_errors("Status: FAILED") == "Status: FAILED"
    assert assistant.pick_errors("all good") == assistant.NO_SPECIFIC_ERROR


def test_generate_test_cases(fake_llm):
    fake_llm.queue(
        'Voici : {"generatedTestCases": ['
        '{"name": "Somme valide", "inputs": ["2", "3"], "expectedOutput": "5"},'
        '{"name": "Zéro", "inputs": ["0", "0"], "expectedOutput": "0"},'
        ']}'
    )
    cases = assistant.generate_test_cases("print(int(input()) + int(input()))")
    assert [c.name for c in cases] == ["Somme valide", "Zéro"]
    assert cases[0].inputs == ["2", "3"]
    assert cases[0].expected_output == "5"
    assert cases[1].id == "ai-2"


def test_generate_test_cases_wrong_shape(fake_llm):
    fake_llm.queue('{"tests": []}')
    with pytest.raises(AIResponseFormatError):
        assistant.generate_test_cases("print(1)")


def test_explain_test_failure_parses_json(fake_llm):
    fake_llm.queue('{"explanation": "L\'âge est fixé à 18, la branche else n\'est jamais atteinte."}')
    explanation = assistant.explain_test_failure(
        "age = 18\nif age >= 18:\n    print('majeur')\nelse:\n    print('mineur')",
        "Mineur", ["12"], "mineur", "majeur",
    )
    assert "fixé à 18" in explanation
    assert 'Ligne 1: "12"' in fake_llm.last_prompt


def test_explain_test_failure_fallbacks(fake_llm):
    fake_llm.queue('{"explanation": "La sortie "majeur" ne correspond pas"}')
    assert assistant.explain_test_failure("c", "t", [], "a", "b") == 'La sortie "majeur" ne correspond pas'

    fake_llm.queue("Le code ignore l'entrée.")
    assert assistant.explain_test_failure("c", "t", [], "a", "b") == "Le code ignore l'entrée."


def test_explain_error_uses_analyzer_when_confident(fake_llm):
    result = assistant.explain_error("print(1/0)", "ZeroDivisionError: division by zero")
    assert result["source"] == "analyzer"
    assert result["confident"] is True
    assert fake_llm.calls == []


def test_explain_error_asks_ai_when_unsure(fake_llm):
    fake_llm.queue('{"explanation": "La clé \'a\' n\'existe pas dans le dictionnaire."}')
    result = assistant.explain_error("d = {}\nd['a']", "KeyError: 'a'")
    assert result == {
        "explanation": "La clé 'a' n'existe pas dans le dictionnaire.",
        "confident": False,
        "source": "ai",
    }


def test_explain_error_keeps_analyzer_on_ai_failure(fake_llm):
    fake_llm.queue(LLMError("connection refused"))
    result = assistant.explain_error("", "KeyError: 'a'")
    assert result["source"] == "analyzer"
    assert result["confident"] is False


def test_explain_error_without_ai(fake_llm):
    result = assistant.explain_error("", "KeyError: 'a'", use_ai=False)
    assert result["source"] == "analyzer"
    assert fake_llm.calls == []
