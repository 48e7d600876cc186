"""
AI helpers for the student: code explanation, debugging hints, suggested test
cases and explanations of failing tests or errors.

The French-facing prompts all follow the same rule: guide the student, never
hand over the corrected code.
"""
import logging

from pydantic import ValidationError

import config
from ai_json import AIResponseFormatError, extract_string_field, parse_ai_json, strip_thinking
from error_analyzer import analyze_python_error
from llm import LLMError, call_llm
from schemas import GeneratedTestCases, TestCase

logger = logging.getLogger(__name__)

NO_SPECIFIC_ERROR = "No specific errors detected, but AI can still review."
ERROR_MARKERS = ("error", "traceback", "failed")


def _reply_preview(reply, length=100):
    return reply[:length] + ("..." if len(reply) > length else "")


def explain_code(code, provider=None):
    """Return `code` with explanatory comments added by the AI."""
    prompt_messages = [
        {
            "role": "system",
            "content": """You are an AI code assistant that automatically adds comments to explain sections of code.
            Your entire response MUST be a single JSON object matching this schema, with no conversational preamble:
            {
                "explainedCode": "string (The Python code with comments added. Escape newlines as \\n and quotes as \\" within the string.)"
            }
            """
        },
        {
            "role": "user",
            "content": f"Please add comments to the following Python code to explain what each section does:\n```python\n{code}\n```"
        },
    ]
    reply = call_llm(prompt_messages, provider, response_format_type="json_object", max_tokens=2048)

    try:
        parsed = parse_ai_json(reply)
    except AIResponseFormatError:
        logger.error(f"Raw AI reply (code explanation): {reply}")
        raise AIResponseFormatError(
            "L'IA a répondu dans un format JSON invalide pour l'explication de code. "
            f"Début de la réponse : {_reply_preview(reply)}"
        )

    explained = parsed.get("explainedCode")
    if not isinstance(explained, str) or not explained.strip():
        raise AIResponseFormatError("L'IA n'a pas fourni de code expliqué ou la réponse était vide/malformée.")
    return explained


def pick_errors(output, errors=None):
    """Errors to send to the debugger: explicit ones, else the run log if it looks like a failure."""
    if errors and errors.strip():
        return errors
    lowered = (output or "").lower()
    if any(marker in lowered for marker in ERROR_MARKERS):
        return output
    return NO_SPECIFIC_ERROR


def debug_code(code, output="", errors=None, provider=None):
    """French debugging suggestions for a student whose code failed."""
    errors = pick_errors(output, errors)
    prompt_messages = [
        {
            "role": "system",
            "content": """Tu es un assistant pédagogique IA spécialisé en programmation Python pour des lycéens ou étudiants débutants.
            Le code d'un étudiant a produit une erreur. Ta tâche est d'expliquer cette erreur à l'étudiant en **français**.

            Concentre-toi sur les points suivants :
            1. Expliquer clairement ce que signifie le message d'erreur en termes simples.
            2. Aider l'étudiant à comprendre *pourquoi* cette erreur s'est probablement produite dans son code.
            3. Fournir des conseils ou des questions pour le guider afin qu'il trouve lui-même l'erreur.
            4. **Ne fournis PAS le code corrigé ni la solution directe.**
            5. Sois encourageant et patient.

            Formate ta réponse pour une bonne lisibilité (retours à la ligne, listes si pertinent).
            """
        },
        {
            "role": "user",
            "content": (
                f"Voici le code de l'étudiant :\n```python\n{code}\n```\n\n"
                f"Message d'erreur brut :\n```\n{errors}\n```\n\n"
                f"Sortie (si disponible) avant l'erreur :\n```\n{output or ''}\n```\n\n"
                "Explication et conseils :"
            )
        },
    ]
    reply = call_llm(prompt_messages, provider, temperature=0.5, max_tokens=1500)
    suggestions = strip_thinking(reply)
    if not suggestions:
        raise AIResponseFormatError("L'IA n'a pas fourni de suggestions de débogage.")
    return suggestions


def generate_test_cases(code, provider=None):
    """Ask the AI for five test cases covering typical use and edge cases."""
    prompt_messages = [
        {
            "role": "system",
            "content": """You are an expert Python test case generator. Analyze the provided Python code and generate exactly 5 distinct test cases.

            For each test case provide:
            1. 'name' (string): a short, descriptive name (e.g., "Somme valide", "Cas limite zéro").
            2. 'inputs' (array of strings): one string per line typed for sequential input() calls, in order.
               Use [] if the code does not call input(). An empty string "" is a valid input line.
            3. 'expectedOutput' (string): the exact text the code prints to standard output for those inputs.
               Prompts passed to input() are not part of the output.

            Consider typical usage and edge cases (empty inputs, zero values, large numbers, invalid types).
            Your entire response MUST be a single JSON object:
            {"generatedTestCases": [{"name": "...", "inputs": ["..."], "expectedOutput": "..."}]}
            """
        },
        {"role": "user", "content": f"Analyze the following Python code:\n```python\n{code}\n```"},
    ]
    reply = call_llm(prompt_messages, provider, response_format_type="json_object", max_tokens=2048)
    parsed = parse_ai_json(reply)

    try:
        generated = GeneratedTestCases.model_validate(parsed)
    except ValidationError as e:
        logger.error(f"Unexpected test case structure from AI: {parsed}")
        raise AIResponseFormatError(f"AI failed to generate test cases or the format was incorrect: {e}") from e

    return [
        TestCase(id=f"ai-{index + 1}", name=case.name, inputs=case.inputs, expected_output=case.expectedOutput)
        for index, case in enumerate(generated.generatedTestCases)
    ]


def explain_test_failure(code, test_name, inputs, expected_output, actual_output, provider=None):
    """French explanation of why one test case failed."""
    inputs_block = "\n".join(f'Ligne {i + 1}: "{line}"' for i, line in enumerate(inputs)) or "(aucune entrée)"
    prompt_messages = [
        {
            "role": "system",
            "content": """Tu es un assistant pédagogique IA spécialisé en programmation Python pour des lycéens ou étudiants débutants.
            Un test a échoué et tu dois expliquer à l'étudiant **pourquoi** ce test a échoué, en **français**, de manière claire et pédagogique.

            1. Trace mentalement l'exécution du code avec les entrées fournies.
            2. Identifie la cause racine : valeurs codées en dur, conditions incorrectes, erreurs logiques...
            3. Explique la différence entre la sortie obtenue et la sortie attendue, et pourquoi elle se produit.
            4. **Ne fournis PAS le code corrigé ni la solution directe.**
            5. Sois encourageant, concis mais complet.

            ATTENTION : si le code contient des valeurs fixes (par exemple "age = 18" au lieu de "age = int(input())"),
            certaines branches ne peuvent jamais être atteintes. Explique-le clairement.

            Ta réponse entière DOIT être un objet JSON unique, sans préambule :
            {"explanation": "string (l'explication en français)"}
            """
        },
        {
            "role": "user",
            "content": (
                f"**Nom du test :** {test_name}\n\n"
                f"**Code de l'étudiant :**\n```python\n{code}\n```\n\n"
                f"**Entrées fournies au test :**\n{inputs_block}\n\n"
                f"**Sortie attendue :**\n```\n{expected_output}\n```\n\n"
                f"**Sortie obtenue :**\n```\n{actual_output}\n```"
            )
        },
    ]
    reply = call_llm(prompt_messages, provider, response_format_type="json_object", max_tokens=1500)

    try:
        explanation = parse_ai_json(reply).get("explanation")
    except AIResponseFormatError:
        logger.warning(f"Failed JSON parse for test failure explanation, using fallback. Raw reply: {reply[:500]}")
        explanation = extract_string_field(reply, "explanation") or strip_thinking(reply)

    if not isinstance(explanation, str) or not explanation.strip():
        raise AIResponseFormatError(
            "L'IA n'a pas fourni d'explication pour l'échec du test ou la réponse était vide/malformée."
        )
    return explanation.strip()


def explain_error(code, error_text, provider=None, use_ai=True):
    """Explain an error, deterministic analyzer first and the AI only when it is unsure."""
    analysis = analyze_python_error(error_text, code)
    result = {"explanation": analysis.explanation, "confident": analysis.confident, "source": "analyzer"}
    if analysis.confident or not use_ai:
        return result

    prompt_messages = [
        {
            "role": "system",
            "content": """Tu es un tuteur Python patient pour des débutants.
            Explique en français, en quelques phrases simples, ce que signifie l'erreur et comment la repérer.
            Ne donne pas le code corrigé.
            Ta réponse entière DOIT être un objet JSON : {"explanation": "..."}
            """
        },
        {"role": "user", "content": f"Code :\n```python\n{code}\n```\nErreur :\n```\n{error_text}\n```"},
    ]
    try:
        reply = call_llm(prompt_messages, provider or config.DEFAULT_LLM_PROVIDER,
                         response_format_type="json_object", temperature=0.5)
        try:
            explanation = parse_ai_json(reply).get("explanation")
        except AIResponseFormatError:
            explanation = extract_string_field(reply, "explanation")
    except (LLMError, AIResponseFormatError) as e:
        logger.warning(f"AI error explanation unavailable, keeping analyzer output: {e}")
        return result

    if isinstance(explanation, str) and explanation.strip():
        return {"explanation": explanation.strip(), "confident": False, "source": "ai"}
    return result
