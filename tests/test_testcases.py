import executor
import testcases
from schemas import ExecutionResult, TestCase
from testcases import DEFAULT_CODE, SAMPLE_TEST_CASES, iter_test_results, run_test_case, run_test_cases


def test_default_code_passes_sample_cases():
    run = run_test_cases(DEFAULT_CODE, SAMPLE_TEST_CASES, "local")
    assert [r.passed for r in run.results] == [True, True, True, True]
    assert run.summary() == {"passed": 4, "total": 4, "allPassed": True}
    assert "Summary: All tests passed!" in run.log
    assert 'Running test: Greet Alice (Input: "Alice")' in run.log


def test_failing_case_is_reported():
    case = TestCase(name="Wrong greeting", inputs=["Alice"], expected_output="Bonjour, Alice !")
    result = run_test_case(DEFAULT_CODE, case, "local")
    assert result.passed is False
    assert result.actual_output == "Hello, Alice!"
    assert result.name == "Wrong greeting"
    assert set(result.model_dump(by_alias=True)) == {"id", "name", "inputs", "expectedOutput", "actualOutput", "passed"}


def test_outputs_are_compared_trimmed():
    case = TestCase(name="Spaces", inputs=[], expected_output="  done\n")
    assert run_test_case("print('done')\n\n", case, "local").passed


def test_runtime_error_fails_with_traceback():
    case = TestCase(name="Division", inputs=["0"], expected_output="inf")
    result = run_test_case("print(1 / int(input()))", case, "local")
    assert not result.passed
    assert "ZeroDivisionError" in result.actual_output


def test_backend_exception_becomes_error_result(monkeypatch):
    def boom(code, test_input, backend):
        raise RuntimeError("AI backend unreachable")

    monkeypatch.setattr(testcases, "execute_code", boom)
    run = run_test_cases("print(1)", [TestCase(name="t", expected_output="1")])
    result = run.results[0]
    assert result.actual_output == "ERROR: AI backend unreachable"
    assert not result.passed
    assert 'Error for test "t": AI backend unreachable' in run.log
    assert "Some tests failed." in run.log


def test_cases_run_one_after_another(monkeypatch):
    seen = []

    def fake_execute(code, test_input, backend):
        seen.append(test_input)
        return ExecutionResult(success_output=test_input.upper())

    monkeypatch.setattr(testcases, "execute_code", fake_execute)
    cases = [TestCase(name=n, inputs=[n], expected_output=n.upper()) for n in ("a", "b", "c")]
    results = iter_test_results("code", cases)

    first = next(results)
    assert first.passed and seen == ["a"]
    assert [r.name for r in results] == ["b", "c"]
    assert seen == ["a", "b", "c"]


def test_ai_backend_runs_through_simulation(fake_llm):
    fake_llm.queue('{"stdout": "Hello, Bob!", "stderr": ""}')
    result = run_test_case(DEFAULT_CODE, SAMPLE_TEST_CASES[1], "ai")
    assert result.passed
    assert executor.call_llm is fake_llm


def test_legacy_single_input_field():
    case = TestCase.model_validate({"name": "two lines", "input": "3\n4", "expectedOutput": "7"})
    assert case.inputs == ["3", "4"]
    assert run_test_case("print(int(input()) + int(input()))", case, "local").passed
