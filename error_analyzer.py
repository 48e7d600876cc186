"""
Deterministic explanations for common Python errors.

Recognises a handful of error message shapes that beginners hit all the time
and answers with a short explanation in French, without calling an AI service.
"""
import re
import logging

from schemas import Analysis

logger = logging.getLogger(__name__)

BLOCK_KEYWORDS = ("if", "elif", "else", "for", "while", "def", "class", "try", "except", "finally")

LINE_NUMBER_RE = re.compile(r"line\s+(\d+)", re.IGNORECASE)
UNDEFINED_NAME_RE = re.compile(r"name\s+'([^']+)'\s+is\s+not\s+defined", re.IGNORECASE)
BLOCK_HEADER_RE = re.compile(r"^(%s)\b" % "|".join(BLOCK_KEYWORDS), re.IGNORECASE)
ENDS_WITH_COLON_RE = re.compile(r":\s*$")

SYNTAX_ERROR_NAMES = ("syntaxerror", "indentationerror", "taberror")

GENERIC_EXPLANATION = (
    "Une erreur s'est produite. Relis la ligne indiquée dans le message d'erreur "
    "et vérifie les parenthèses, les types et les noms de variables."
)


def extract_line_number(error_text):
    match = LINE_NUMBER_RE.search(error_text)
    if not match:
        return None
    return int(match.group(1))


def bracket_balance(text):
    """Return (paren, bracket, brace) counts of openers minus closers."""
    paren = bracket = brace = 0
    for ch in text:
        if ch == "(":
            paren += 1
        elif ch == ")":
            paren -= 1
        elif ch == "[":
            bracket += 1
        elif ch == "]":
            bracket -= 1
        elif ch == "{":
            brace += 1
        elif ch == "}":
            brace -= 1
    return paren, bracket, brace


def _indent_width(line):
    expanded = line.replace("\t", "    ")
    return len(expanded) - len(expanded.lstrip())


def _line_at(lines, number):
    if number is None or number < 1 or number > len(lines):
        return ""
    return lines[number - 1]


def missing_colon_keyword(line):
    """Return the block keyword if `line` opens a block without ending in ':'."""
    stripped = line.strip()
    match = BLOCK_HEADER_RE.match(stripped)
    if match and not ENDS_WITH_COLON_RE.search(stripped):
        return match.group(1).lower()
    return None


def _analyze_syntax_error(lines, line_number):
    current = _line_at(lines, line_number)
    previous = _line_at(lines, line_number - 1) if line_number else ""
    previous_number = line_number - 1 if line_number else ""

    keyword = missing_colon_keyword(current)
    if keyword:
        return Analysis(
            confident=True,
            explanation=(
                f"Il manque ':' à la fin de la ligne {line_number} après '{keyword}'. "
                "En Python, les lignes qui ouvrent un bloc (if/elif/else/for/while/def/class/"
                "try/except/finally) doivent se terminer par ':'."
            ),
        )

    previous_opens_block = bool(ENDS_WITH_COLON_RE.search(previous.rstrip()))
    current_indent = _indent_width(current)
    previous_indent = _indent_width(previous)
    current_has_code = bool(current.strip())

    if not previous_opens_block and current_has_code and current_indent > previous_indent:
        return Analysis(
            confident=True,
            explanation=(
                f"Indentation inattendue à la ligne {line_number}. Cette ligne a plus d'espaces "
                "que la précédente alors qu'aucun bloc n'a été ouvert (pas de ':' avant). "
                "Aligne-la avec la ligne précédente, ou ouvre un bloc juste avant."
            ),
        )

    if previous_opens_block and current_has_code and current_indent <= previous_indent:
        return Analysis(
            confident=True,
            explanation=(
                f"La ligne {previous_number} se termine par ':', donc la ligne {line_number} "
                "doit être indentée (par exemple avec 4 espaces). Ajoute une indentation "
                "cohérente sous le 'if/for/while/def'."
            ),
        )

    if ("\t" in previous or "\t" in current) and (previous[:1].isspace() or current[:1].isspace()):
        return Analysis(
            confident=True,
            explanation=(
                "Indentation incohérente : tabulations et espaces sont mélangés. Utilise "
                f"uniquement des espaces (4 par niveau), surtout autour de la ligne {line_number}."
            ),
        )

    paren, bracket, brace = bracket_balance(previous)
    if paren > 0:
        return Analysis(
            confident=True,
            explanation=(
                f"Il manque probablement une parenthèse fermante ')' à la fin de la ligne "
                f"{previous_number}. Vérifie que chaque appel, par exemple input(...) ou "
                "float(...), est bien refermé."
            ),
        )
    if bracket > 0:
        return Analysis(
            confident=True,
            explanation=f"Il manque probablement un crochet fermant ']' à la fin de la ligne {previous_number}.",
        )
    if brace > 0:
        return Analysis(
            confident=True,
            explanation=f"Il manque probablement une accolade fermante '}}' à la fin de la ligne {previous_number}.",
        )

    if line_number:
        return Analysis(
            confident=False,
            explanation=(
                f"Erreur de syntaxe à la ligne {line_number}. Vérifie les parenthèses, les "
                f"deux-points et la fin de la ligne. Ligne en cause : {current.strip()}"
            ),
        )
    return None


def analyze_python_error(error_text, code=""):
    """Explain a Python error message in French.

    Checks run in a fixed order and the first match wins. `confident` is False
    when only a generic hint could be given.
    """
    error_text = error_text or ""
    lines = (code or "").split("\n")
    error_lower = error_text.lower()

    if "valueerror: could not convert string to float" in error_lower:
        return Analysis(
            confident=True,
            explanation=(
                "Tu essaies de convertir un texte en nombre (float). Assure-toi que l'entrée "
                "ne contient que des chiffres (ex : '12.5'). Tu peux vérifier l'entrée avant "
                "de la convertir, ou utiliser try/except pour afficher un message clair."
            ),
        )

    if "zerodivisionerror" in error_lower:
        return Analysis(
            confident=True,
            explanation=(
                "Tu effectues une division par zéro. Vérifie la valeur du dénominateur avant "
                "la division et gère le cas où il vaut 0 (par exemple en affichant un message)."
            ),
        )

    if "nameerror" in error_lower:
        match = UNDEFINED_NAME_RE.search(error_text)
        if match:
            name = match.group(1)
            return Analysis(
                confident=True,
                explanation=(
                    f"La variable '{name}' est utilisée avant d'être définie. Déclare ou "
                    f"initialise '{name}' avant de t'en servir, ou vérifie l'orthographe du nom."
                ),
            )

    if "typeerror" in error_lower and "unsupported operand type" in error_lower:
        return Analysis(
            confident=True,
            explanation=(
                "Tu essaies de combiner des types incompatibles (par exemple additionner un "
                "texte et un nombre). Convertis les valeurs au bon type (int/float) avant "
                "l'opération."
            ),
        )

    if any(name in error_lower for name in SYNTAX_ERROR_NAMES):
        analysis = _analyze_syntax_error(lines, extract_line_number(error_text))
        if analysis is not None:
            return analysis

    logger.debug("No known pattern for error: %s", error_text[:200])
    return Analysis(confident=False, explanation=GENERIC_EXPLANATION)
