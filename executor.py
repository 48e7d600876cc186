"""
Running student code.

Two backends share the same envelope (`ExecutionResult`):

* ``local``: a child Python interpreter runs the code for real, with
  ``input()`` fed from the test input lines.
* ``ai``: the configured LLM is asked to simulate the run and answer with
  JSON-shaped stdout/stderr.
"""
import os
import logging
import tempfile
import subprocess

import config
from ai_json import AIResponseFormatError, extract_string_field, parse_ai_json
from llm import call_llm
from schemas import ExecutionResult

logger = logging.getLogger(__name__)

BACKENDS = ("local", "ai")

# Runs inside the child interpreter: argv[1] is the student's file, stdin holds
# the test input. input() never echoes its prompt so that printed output can
# be compared with the expected output of a test case.
BOOTSTRAP = r'''
import builtins, sys, traceback
_lines = sys.stdin.read().split("\n")
_position = [0]
def _input(prompt=""):
    index = _position[0]
    _position[0] += 1
    return _lines[index] if index < len(_lines) else ""
builtins.input = _input
with open(sys.argv[1], encoding="utf-8") as handle:
    source = handle.read()
sys.argv = ["<stdin>"]
try:
    code = compile(source, "<stdin>", "exec")
    exec(code, {"__name__": "__main__", "__builtins__": builtins})
except SystemExit:
    raise
except BaseException as exc:
    sys.stdout.flush()
    traceback.print_exception(type(exc), exc, exc.__traceback__.tb_next)
    sys.exit(1)
'''


def run_python_locally(code, test_input="", timeout=None):
    """Execute `code` in a child interpreter, threading `test_input` lines into input()."""
    timeout = timeout or config.EXECUTION_TIMEOUT

    with tempfile.NamedTemporaryFile(mode='w', suffix='.py', delete=False, encoding='utf-8') as temp_file:
        temp_file.write(code)
        temp_file_path = temp_file.name

    env = dict(os.environ, PYTHONIOENCODING="utf-8", PYTHONDONTWRITEBYTECODE="1")
    try:
        result = subprocess.run(
            [config.PYTHON_EXECUTABLE, "-c", BOOTSTRAP, temp_file_path],
            input=test_input or "",
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        logger.info(f"Execution timed out after {timeout}s")
        return ExecutionResult(error_output=f"Execution timed out after {timeout} seconds")
    except FileNotFoundError:
        return ExecutionResult(error_output=f"Python interpreter not found: {config.PYTHON_EXECUTABLE}")
    finally:
        if os.path.exists(temp_file_path):
            os.unlink(temp_file_path)

    if result.returncode == 0:
        return ExecutionResult(success_output=result.stdout)

    error_output = result.stderr.strip() or f"Process exited with status {result.returncode}"
    logger.debug(f"Execution failed: {error_output[:200]}")
    return ExecutionResult(success_output=result.stdout or None, error_output=error_output)


def _simulation_messages(code, test_input):
    input_lines = test_input.split("\n") if test_input else []
    if input_lines:
        inputs_block = "\n".join(f"Line {i + 1}: {line!r}" for i, line in enumerate(input_lines))
    else:
        inputs_block = "(no input lines)"
    return [
        {
            "role": "system",
            "content": """You are a Python code execution simulator.
            Simulate the execution of the provided Python code exactly as CPython 3 would.
            Each call to input() consumes the next provided input line, in order; once the
            lines run out input() returns an empty string. Prompts passed to input() are NOT printed.

            Your entire response MUST be a single JSON object, with no preamble:
            {
                "stdout": "everything the program prints to standard output",
                "stderr": "a Python-like traceback if the program fails, otherwise an empty string"
            }
            Escape newlines as \\n and quotes as \\" inside the strings.
            """
        },
        {
            "role": "user",
            "content": f"Python code:\n```python\n{code}\n```\nInput lines:\n{inputs_block}"
        },
    ]


def simulate_python_with_ai(code, test_input="", provider=None):
    """Ask the LLM to pretend to run `code`. AI-declared tracebacks become error_output."""
    reply = call_llm(_simulation_messages(code, test_input), provider,
                     response_format_type="json_object", temperature=0.0)
    try:
        parsed = parse_ai_json(reply)
        stdout, stderr = parsed.get("stdout"), parsed.get("stderr")
    except AIResponseFormatError:
        stdout = extract_string_field(reply, "stdout")
        stderr = extract_string_field(reply, "stderr")
        if stdout is None and stderr is None:
            raise

    if stderr:
        return ExecutionResult(success_output=stdout or None, error_output=str(stderr))
    return ExecutionResult(success_output=str(stdout or ""))


def execute_code(code, test_input="", backend=None):
    backend = (backend or config.EXECUTION_BACKEND).lower()
    if backend == "local":
        return run_python_locally(code, test_input)
    elif backend == "ai":
        return simulate_python_with_ai(code, test_input)
    raise ValueError(f"Unknown execution backend: {backend}")
