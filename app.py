import io
import json
import logging

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.utils import secure_filename

import config
import assistant
from ai_json import AIResponseFormatError
from error_analyzer import analyze_python_error
from executor import BACKENDS, execute_code
from llm import PROVIDERS, LLMError, LLMConfigurationError, available_providers
from models import db, Snippet
from schemas import TestCase
from testcases import DEFAULT_CODE, SAMPLE_TEST_CASES, format_test_log, iter_test_results, run_test_cases

logger = logging.getLogger(__name__)

config.warn_missing_keys()

app = Flask(__name__)
CORS(app)

# --- Database Configuration ---
app.config['SQLALCHEMY_DATABASE_URI'] = config.DATABASE_URL
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_BYTES

db.init_app(app)


# --- Request helpers ---

def _json_body():
    return request.get_json(silent=True) or {}


def _get_code(data):
    code = data.get('code', '')
    return code if isinstance(code, str) and code.strip() else None


def _get_backend(data):
    backend = (data.get('backend') or config.EXECUTION_BACKEND).lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown execution backend: {backend}. Use one of: {', '.join(BACKENDS)}")
    return backend


def _get_test_cases(data):
    raw_cases = data.get('testCases')
    if raw_cases is None:
        return list(SAMPLE_TEST_CASES)
    if not isinstance(raw_cases, list):
        raise ValueError("testCases must be a list")
    return [TestCase.model_validate(tc) for tc in raw_cases]


def _safe_py_filename(name):
    """secure_filename() drops non-ASCII characters; keep a usable .py name."""
    stem = name[:-3] if name.lower().endswith('.py') else name
    stem = secure_filename(stem)
    return f"{stem}.py" if stem else 'script.py'


def _ai_failure(e, action):
    """Map an AI failure to a JSON error response."""
    if isinstance(e, LLMConfigurationError):
        logger.error(f"AI provider not configured ({action}): {e}")
        return jsonify({"error": str(e)}), 503
    if isinstance(e, (LLMError, AIResponseFormatError)):
        logger.error(f"AI backend failed ({action}): {e}")
        return jsonify({"error": str(e)}), 502
    logger.exception(f"Unexpected error ({action})")
    return jsonify({"error": f"Failed to {action}: {str(e)}"}), 500


# --- API Routes ---

@app.route('/')
def home():
    """A simple home route to confirm the server is running."""
    return "CodeMuse backend is running!"


@app.route('/health', methods=['GET'])
def health_check():
    return jsonify({
        'status': 'healthy',
        'service': 'CodeMuse Backend',
        'llm_provider': config.DEFAULT_LLM_PROVIDER,
        'providers': list(PROVIDERS),
        'available_providers': available_providers(),
        'execution_backend': config.EXECUTION_BACKEND,
        'execution_backends': list(BACKENDS),
    })


@app.route('/defaults', methods=['GET'])
def defaults():
    return jsonify({
        "code": DEFAULT_CODE,
        "fileName": "script.py",
        "testCases": [tc.model_dump(by_alias=True) for tc in SAMPLE_TEST_CASES],
    })


@app.route('/run-code', methods=['POST'])
def run_code():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    test_input = data.get('input')
    if test_input is None:
        test_input = "\n".join(data.get('inputs') or [])

    try:
        backend = _get_backend(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = execute_code(code, test_input, backend)
    except Exception as e:
        return _ai_failure(e, "run code")

    analysis = None
    if not result.ok:
        analysis = analyze_python_error(result.error_output, code).model_dump()

    return jsonify({
        "successOutput": result.success_output,
        "errorOutput": result.error_output,
        "analysis": analysis,
        "backend": backend,
    }), 200


@app.route('/run-tests', methods=['POST'])
def run_tests():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    try:
        backend = _get_backend(data)
        test_cases = _get_test_cases(data)
    except (ValueError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400

    run = run_test_cases(code, test_cases, backend)
    return jsonify({
        "results": [r.model_dump(by_alias=True) for r in run.results],
        "summary": run.summary(),
        "log": run.log,
    }), 200


@app.route('/run-tests/stream', methods=['POST'])
def run_tests_stream():
    """Same as /run-tests, but one NDJSON line per finished test, then a summary line."""
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    try:
        backend = _get_backend(data)
        test_cases = _get_test_cases(data)
    except (ValueError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400

    def generate():
        passed = 0
        for test_case, result in zip(test_cases, iter_test_results(code, test_cases, backend)):
            passed += result.passed
            yield json.dumps({
                "type": "result",
                "result": result.model_dump(by_alias=True),
                "log": format_test_log(test_case, result),
            }, ensure_ascii=False) + "\n"
        yield json.dumps({
            "type": "summary",
            "summary": {"passed": passed, "total": len(test_cases), "allPassed": passed == len(test_cases)},
        }) + "\n"

    return app.response_class(generate(), mimetype='application/x-ndjson')


@app.route('/explain-code', methods=['POST'])
def explain_code():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    try:
        explained = assistant.explain_code(code, data.get('provider'))
    except Exception as e:
        return _ai_failure(e, "explain code")
    return jsonify({"explainedCode": explained}), 200


@app.route('/debug-code', methods=['POST'])
def debug_code():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    try:
        suggestions = assistant.debug_code(code, data.get('output', ''), data.get('errors'), data.get('provider'))
    except Exception as e:
        return _ai_failure(e, "get debugging suggestions")
    return jsonify({"suggestions": suggestions}), 200


@app.route('/explain-error', methods=['POST'])
def explain_error():
    data = _json_body()
    error_text = data.get('error', '')
    if not error_text or not str(error_text).strip():
        return jsonify({"error": "Error message not provided"}), 400

    use_ai = data.get('useAi', True)
    if not isinstance(use_ai, bool):
        return jsonify({"error": "useAi must be true or false"}), 400
    result = assistant.explain_error(data.get('code', ''), str(error_text), data.get('provider'), use_ai=use_ai)
    return jsonify(result), 200


@app.route('/generate-test-cases', methods=['POST'])
def generate_test_cases():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    try:
        test_cases = assistant.generate_test_cases(code, data.get('provider'))
    except Exception as e:
        return _ai_failure(e, "generate test cases")
    return jsonify({"generatedTestCases": [tc.model_dump(by_alias=True) for tc in test_cases]}), 200


@app.route('/explain-test-failure', methods=['POST'])
def explain_test_failure():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Code not provided"}), 400

    inputs = data.get('inputs')
    if inputs is None:
        raw = data.get('input') or ''
        inputs = raw.split('\n') if raw else []

    try:
        explanation = assistant.explain_test_failure(
            code,
            data.get('testName', 'Test'),
            inputs,
            data.get('expectedOutput', ''),
            data.get('actualOutput', ''),
            data.get('provider'),
        )
    except Exception as e:
        return _ai_failure(e, "explain test failure")
    return jsonify({"explanation": explanation}), 200


# --- File import / export ---

@app.route('/files/import', methods=['POST'])
def import_file():
    uploaded = request.files.get('file')
    if uploaded is None or not uploaded.filename:
        return jsonify({"error": "No file uploaded"}), 400

    if not uploaded.filename.lower().endswith('.py'):
        return jsonify({"error": "Only .py files can be imported"}), 400
    filename = _safe_py_filename(uploaded.filename)

    try:
        code = uploaded.read().decode('utf-8')
    except UnicodeDecodeError:
        return jsonify({"error": "File is not valid UTF-8 text"}), 400

    logger.info(f"Imported {filename} ({len(code)} chars)")
    return jsonify({"filename": filename, "code": code}), 200


@app.route('/files/export', methods=['POST'])
def export_file():
    data = _json_body()
    code = _get_code(data)
    if code is None:
        return jsonify({"error": "Nothing to export"}), 400

    filename = _safe_py_filename(data.get('filename') or 'script.py')

    return send_file(
        io.BytesIO(code.encode('utf-8')),
        mimetype='text/x-python; charset=utf-8',
        as_attachment=True,
        download_name=filename,
    )


# --- Saved workspaces ---

@app.route('/snippets', methods=['GET'])
def list_snippets():
    snippets = db.session.execute(db.select(Snippet).order_by(Snippet.updated_at.desc())).scalars()
    return jsonify([s.to_dict() for s in snippets]), 200


@app.route('/snippets', methods=['POST'])
def save_snippet():
    data = _json_body()
    try:
        test_cases = [TestCase.model_validate(tc) for tc in data.get('testCases') or []]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    snippet = Snippet(
        filename=_safe_py_filename(data.get('filename') or 'script.py'),
        code=data.get('code', ''),
    )
    snippet.test_cases = test_cases
    db.session.add(snippet)
    db.session.commit()
    return jsonify(snippet.to_dict()), 201


@app.route('/snippets/<int:snippet_id>', methods=['GET'])
def get_snippet(snippet_id):
    snippet = db.session.get(Snippet, snippet_id)
    if snippet is None:
        return jsonify({"error": "Snippet not found"}), 404
    return jsonify(snippet.to_dict()), 200


@app.route('/snippets/<int:snippet_id>', methods=['PUT'])
def update_snippet(snippet_id):
    snippet = db.session.get(Snippet, snippet_id)
    if snippet is None:
        return jsonify({"error": "Snippet not found"}), 404

    data = _json_body()
    try:
        if 'testCases' in data:
            snippet.test_cases = [TestCase.model_validate(tc) for tc in data['testCases'] or []]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    if 'code' in data:
        snippet.code = data['code']
    if data.get('filename'):
        snippet.filename = _safe_py_filename(data['filename'])
    db.session.commit()
    return jsonify(snippet.to_dict()), 200


@app.route('/snippets/<int:snippet_id>', methods=['DELETE'])
def delete_snippet(snippet_id):
    snippet = db.session.get(Snippet, snippet_id)
    if snippet is None:
        return jsonify({"error": "Snippet not found"}), 404
    db.session.delete(snippet)
    db.session.commit()
    return jsonify({"deleted": snippet_id}), 200


if __name__ == '__main__':
    # Create database tables
    with app.app_context():
        db.create_all()

    print("Starting CodeMuse backend...")
    print(f"Default LLM Provider: {config.DEFAULT_LLM_PROVIDER}")
    print(f"Execution backend: {config.EXECUTION_BACKEND}")

    app.run(debug=True, port=config.PORT)
